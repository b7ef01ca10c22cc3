from .camera_handler import CameraHandler, CameraHandlerConfig, ReconnectConfig
from .delivery import SampleDelivery
from .microphone import MicrophoneConfig, MicrophoneSource
from .video import VideoReader, VideoReaderConfig

__all__ = [
    "CameraHandler",
    "CameraHandlerConfig",
    "MicrophoneConfig",
    "MicrophoneSource",
    "ReconnectConfig",
    "SampleDelivery",
    "VideoReader",
    "VideoReaderConfig",
]
