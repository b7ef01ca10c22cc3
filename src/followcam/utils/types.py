from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Literal, Optional, Tuple, Union

import numpy as np

BBoxXYXY = Tuple[float, float, float, float]
Point = Tuple[float, float]
OptionalPoint = Optional[Point]
Time = Fraction

SampleKind = Literal["video", "audio"]

NANOS_PER_SECOND = 1_000_000_000


def time_from_ns(ns: int) -> Time:
    return Fraction(int(ns), NANOS_PER_SECOND)


def time_from_seconds(seconds: Union[int, float, Fraction, str]) -> Time:
    if isinstance(seconds, Fraction):
        return seconds
    if isinstance(seconds, float):
        return Fraction(seconds).limit_denominator(NANOS_PER_SECOND)
    return Fraction(seconds)


@dataclass(frozen=True)
class Detection:
    bbox_xyxy: BBoxXYXY
    score: float
    class_id: int
    class_name: str

    @property
    def centroid_xy(self) -> Point:
        x1, y1, x2, y2 = self.bbox_xyxy
        return (0.5 * (x1 + x2), 0.5 * (y1 + y2))


@dataclass(frozen=True)
class VideoFrame:
    data: np.ndarray
    pixel_format: str = "bgr24"

    @property
    def width(self) -> int:
        return int(self.data.shape[1]) if self.data.ndim >= 2 else 0

    @property
    def height(self) -> int:
        if self.pixel_format in ("nv12", "yuv420p"):
            return int(self.data.shape[0] * 2 // 3)
        return int(self.data.shape[0]) if self.data.ndim >= 2 else 0

    def detached(self) -> "VideoFrame":
        """Copy that stays valid after the capture source recycles its buffer."""
        return VideoFrame(data=np.array(self.data, copy=True), pixel_format=self.pixel_format)


@dataclass(frozen=True)
class AudioChunk:
    data: np.ndarray
    sample_rate: int

    @property
    def num_samples(self) -> int:
        return int(self.data.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.data.ndim == 1 else int(self.data.shape[1])


@dataclass(frozen=True)
class Sample:
    kind: SampleKind
    payload: Union[VideoFrame, AudioChunk]
    pts: Time

    @staticmethod
    def video(data: np.ndarray, pts: Time, pixel_format: str = "bgr24") -> "Sample":
        return Sample(kind="video", payload=VideoFrame(data=data, pixel_format=pixel_format), pts=pts)

    @staticmethod
    def audio(data: np.ndarray, pts: Time, sample_rate: int) -> "Sample":
        return Sample(kind="audio", payload=AudioChunk(data=data, sample_rate=int(sample_rate)), pts=pts)


@dataclass(frozen=True)
class DetectionResult:
    timestamp: Time
    centers: Tuple[Point, ...]

    def to_dict(self) -> dict:
        return {
            "timestamp_s": float(self.timestamp),
            "timestamp": f"{self.timestamp.numerator}/{self.timestamp.denominator}",
            "centers": [[float(x), float(y)] for x, y in self.centers],
        }


class WriterState(str, Enum):
    IDLE = "idle"
    WRITING = "writing"
    FINISHING = "finishing"
    FINISHED = "finished"
    FAILED = "failed"


class PipelineState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    RECORDING = "recording"
    STOPPING = "stopping"


@dataclass(frozen=True)
class RecordingFinished:
    path: str
    duration_s: float
    video_frames: int
    detections: int
    slow_motion: bool
