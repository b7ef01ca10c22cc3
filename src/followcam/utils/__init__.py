from .config import (
    AudioConfig,
    DetectionConfig,
    OutputConfig,
    RecorderConfig,
    SlowMotionConfig,
    SmoothingConfig,
    VideoConfig,
    load_yaml,
    resolve_path,
)
from .errors import ConfigurationError, DecodeError, RecordingError, WriterError, WriterFault
from .logging import setup_logging
from .types import (
    AudioChunk,
    BBoxXYXY,
    Detection,
    DetectionResult,
    PipelineState,
    Point,
    RecordingFinished,
    Sample,
    Time,
    VideoFrame,
    WriterState,
    time_from_ns,
    time_from_seconds,
)

__all__ = [
    "AudioChunk",
    "AudioConfig",
    "BBoxXYXY",
    "ConfigurationError",
    "DecodeError",
    "Detection",
    "DetectionConfig",
    "DetectionResult",
    "OutputConfig",
    "PipelineState",
    "Point",
    "RecorderConfig",
    "RecordingError",
    "RecordingFinished",
    "Sample",
    "SlowMotionConfig",
    "SmoothingConfig",
    "Time",
    "VideoConfig",
    "VideoFrame",
    "WriterError",
    "WriterFault",
    "WriterState",
    "load_yaml",
    "resolve_path",
    "setup_logging",
    "time_from_ns",
    "time_from_seconds",
]
