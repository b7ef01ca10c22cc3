from __future__ import annotations

from fractions import Fraction
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pytest

from followcam.recording.muxer import open_writer
from followcam.utils.config import AudioConfig, VideoConfig
from followcam.utils.types import Sample


SMALL_VIDEO = VideoConfig(width=64, height=48, frame_rate=30, bit_rate=400_000, codecs=("libx264", "mpeg4"))
NO_AUDIO = AudioConfig(enabled=False)


def square_frame(x: int, y: int, size: int = 16, w: int = 64, h: int = 48) -> np.ndarray:
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[y : y + size, x : x + size] = 255
    return img


def square_at(i: int) -> Tuple[int, int]:
    # one subject moving right, one pixel every third frame
    return 4 + i // 3, 16


@pytest.fixture
def write_clip(tmp_path: Path):
    def _write(num_frames: int, name: str = "clip.mp4", audio: Optional[AudioConfig] = None) -> Path:
        writer = open_writer(str(tmp_path / name), SMALL_VIDEO, audio or NO_AUDIO)
        writer.start()
        for i in range(num_frames):
            x, y = square_at(i)
            writer.append_video(Sample.video(square_frame(x, y), Fraction(i, 30)))
        return writer.finish().result(timeout=30)

    return _write
