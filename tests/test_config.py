from fractions import Fraction
from pathlib import Path

import pytest

from followcam.recording.slow_motion import SlowMotionContext
from followcam.utils.config import OutputConfig, RecorderConfig, VideoConfig
from followcam.utils.errors import ConfigurationError
from followcam.utils.types import time_from_ns, time_from_seconds


def test_default_recording_yaml_loads() -> None:
    path = Path(__file__).resolve().parents[1] / "configs" / "recording.yaml"
    cfg = RecorderConfig.load(str(path), base_dir=str(path.parent))
    assert cfg.video.frame_rate == 30
    assert cfg.slow_motion.factor == Fraction(4)
    assert cfg.detection.subject_class == "person"
    assert cfg.detection.conf_threshold == pytest.approx(0.70)
    assert cfg.smoothing.frame_skip == 20
    assert Path(cfg.output.destination_dir).is_absolute()


def test_from_dict_parses_rational_factor_and_codec_list() -> None:
    cfg = RecorderConfig.from_dict(
        {
            "video": {"width": 640, "height": 360, "codecs": "mpeg4"},
            "slow_motion": {"enabled": True, "factor": "5/2", "capture_frame_rate": 240},
            "audio": {"enabled": False},
        }
    )
    assert cfg.video.codecs == ("mpeg4",)
    assert cfg.slow_motion.factor == Fraction(5, 2)
    assert cfg.slow_motion.capture_frame_rate == 240
    assert not cfg.audio.enabled
    assert cfg.audio.rate_for(True) == 22050


def test_invalid_values_rejected() -> None:
    with pytest.raises(ConfigurationError):
        VideoConfig(width=641, height=360)
    with pytest.raises(ConfigurationError):
        RecorderConfig.from_dict({"slow_motion": {"factor": 0}})
    with pytest.raises(ConfigurationError):
        OutputConfig.from_dict({"log_format": "xml"})


def test_scratch_defaults_to_temp_dir() -> None:
    assert OutputConfig().scratch_path()


def test_slow_motion_remap() -> None:
    ctx = SlowMotionContext(enabled=True, session_start_time=Fraction(10), factor=Fraction(4))
    assert ctx.remap(Fraction(10)) == Fraction(10)
    assert ctx.remap(Fraction(10) + Fraction(1, 120)) == Fraction(10) + Fraction(1, 30)
    off = SlowMotionContext(enabled=False, session_start_time=Fraction(10))
    assert off.remap(Fraction(33, 7)) == Fraction(33, 7)
    with pytest.raises(ValueError):
        SlowMotionContext(enabled=True, session_start_time=Fraction(0), factor=Fraction(0))


def test_time_helpers() -> None:
    assert time_from_ns(1_500_000_000) == Fraction(3, 2)
    assert time_from_seconds("1/30") == Fraction(1, 30)
