from .adapter import SubjectDetector
from .base import Detector, DetectorInput
from .gate import DetectionGate
from .mock import BlobDetector, MockDetector
from .registry import create_detector
from .worker import DetectionWorker

__all__ = [
    "BlobDetector",
    "DetectionGate",
    "DetectionWorker",
    "Detector",
    "DetectorInput",
    "MockDetector",
    "SubjectDetector",
    "create_detector",
]
