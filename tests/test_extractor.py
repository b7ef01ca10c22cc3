from dataclasses import replace

import av
import av.error
import pytest

import followcam.trajectory.extractor as extractor_module
from conftest import square_at
from followcam.detection.adapter import SubjectDetector
from followcam.detection.mock import BlobDetector, MockDetector
from followcam.io.video import VideoReader, VideoReaderConfig
from followcam.trajectory.extractor import OfflineTrajectoryExtractor
from followcam.trajectory.smoothing import TrajectorySmoother
from followcam.utils.config import SmoothingConfig
from followcam.utils.errors import DecodeError


def test_only_every_nth_frame_is_detected(write_clip) -> None:
    path = write_clip(10)
    extractor = OfflineTrajectoryExtractor(SubjectDetector(BlobDetector()), frame_skip=2)
    centers = extractor.extract_centers(str(path))

    assert len(centers) == 10
    assert [c is not None for c in centers] == [i % 3 == 0 for i in range(10)]
    for i in (0, 3, 6, 9):
        x, y = square_at(i)
        assert centers[i] == pytest.approx((x + 8.0, y + 8.0), abs=1.5)


def test_frames_without_subject_repeat_previous_center(write_clip) -> None:
    path = write_clip(4)
    extractor = OfflineTrajectoryExtractor(SubjectDetector(MockDetector()), frame_skip=0)
    assert extractor.extract_centers(str(path)) == [None, None, None, None]


def test_extract_returns_smoothed_points(write_clip) -> None:
    path = write_clip(12)
    extractor = OfflineTrajectoryExtractor(
        SubjectDetector(BlobDetector()),
        frame_skip=0,
        smoother=TrajectorySmoother(window_size=5, max_deviation=40.0, kernel_size=3),
    )
    out = extractor.extract(str(path))
    assert len(out) == 12
    assert out[5] == pytest.approx((square_at(5)[0] + 8.0, square_at(5)[1] + 8.0), abs=1.5)


def test_from_config() -> None:
    ex = OfflineTrajectoryExtractor.from_config(
        SubjectDetector(MockDetector()),
        SmoothingConfig(frame_skip=4, window_size=6, kernel_size=3, edge_mode="clamp"),
    )
    assert ex.frame_skip == 4
    assert ex.smoother == TrajectorySmoother(window_size=6, max_deviation=40.0, kernel_size=3, edge_mode="clamp")


def test_missing_file_raises_decode_error(tmp_path) -> None:
    extractor = OfflineTrajectoryExtractor(SubjectDetector(MockDetector()))
    with pytest.raises(DecodeError):
        extractor.extract_centers(str(tmp_path / "missing.mp4"))


def test_non_video_file_raises_decode_error(tmp_path) -> None:
    bogus = tmp_path / "notes.mp4"
    bogus.write_text("not a video", encoding="utf-8")
    with pytest.raises(DecodeError):
        OfflineTrajectoryExtractor(SubjectDetector(MockDetector())).extract(str(bogus))


class _CorruptAfter:
    """Container stand-in that decodes ``good`` frames, then hits a bad packet."""

    def __init__(self, inner, good: int) -> None:
        self._inner = inner
        self._good = good

    def decode(self, stream):
        for i, frame in enumerate(self._inner.decode(stream)):
            if i == self._good:
                raise av.error.FFmpegError(-1, "corrupt packet")
            yield frame

    def close(self) -> None:
        self._inner.close()


class _CorruptReader(VideoReader):
    def __init__(self, cfg: VideoReaderConfig) -> None:
        super().__init__(cfg)
        self._container = _CorruptAfter(self._container, good=3)


def test_reader_raises_on_mid_stream_decode_error(write_clip) -> None:
    path = write_clip(8)
    seen = []
    with _CorruptReader(VideoReaderConfig(uri=str(path))) as reader:
        with pytest.raises(DecodeError):
            for idx, _, _ in reader:
                seen.append(idx)
    assert seen == [0, 1, 2]


def test_mid_stream_decode_error_is_not_a_short_trajectory(write_clip, monkeypatch) -> None:
    path = write_clip(8)
    monkeypatch.setattr(extractor_module, "VideoReader", _CorruptReader)
    extractor = OfflineTrajectoryExtractor(SubjectDetector(BlobDetector()), frame_skip=0)
    with pytest.raises(DecodeError):
        extractor.extract(str(path))


def test_negative_frame_skip_rejected() -> None:
    extractor = OfflineTrajectoryExtractor(SubjectDetector(MockDetector()))
    with pytest.raises(ValueError):
        replace(extractor, frame_skip=-1)
