from __future__ import annotations

from typing import Any, Dict

from followcam.detection.base import Detector
from followcam.detection.mock import BlobDetector, MockDetector
from followcam.utils.errors import ConfigurationError


def create_detector(backend: str, params: Dict[str, Any]) -> Detector:
    if backend == "mock":
        return MockDetector()

    if backend == "blob":
        return BlobDetector(
            class_name=str(params.get("class_name", "person")),
            threshold=int(params.get("threshold", 127)),
            min_area_px=float(params.get("min_area_px", 4.0)),
        )

    if backend == "ultralytics_yolo":
        from followcam.detection.yolo_ultralytics import UltralyticsYoloDetector

        conf_threshold = float(params.get("conf_threshold", 0.70))
        iou_threshold = float(params.get("iou_threshold", 0.5))
        device = params.get("device")
        class_whitelist = params.get("class_whitelist")
        if class_whitelist is not None and not isinstance(class_whitelist, list):
            raise ConfigurationError("class_whitelist must be a list when provided")
        return UltralyticsYoloDetector(
            model_path=str(params.get("model_path", "yolo11s.pt")),
            conf_threshold=conf_threshold,
            iou_threshold=iou_threshold,
            device=str(device) if device is not None else None,
            class_whitelist=[str(x) for x in class_whitelist] if class_whitelist is not None else None,
            image_size=int(params.get("image_size", 640)),
            max_det=int(params.get("max_det", 10)),
        )

    raise ConfigurationError(f"Unknown detector backend: {backend}")
