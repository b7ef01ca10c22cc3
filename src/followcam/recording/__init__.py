from .muxer import WriterSession, open_writer, pick_video_codec
from .pipeline import CapturePipeline, CapturePipelineConfig
from .slow_motion import SlowMotionContext

__all__ = [
    "CapturePipeline",
    "CapturePipelineConfig",
    "SlowMotionContext",
    "WriterSession",
    "open_writer",
    "pick_video_codec",
]
