from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from followcam.detection.base import Detector, DetectorInput
from followcam.utils.image import to_bgr
from followcam.utils.types import Detection, Point, Time, VideoFrame


logger = logging.getLogger("followcam.detection.adapter")


@dataclass
class SubjectDetector:
    """Turns a raw frame into the boxes of the tracked subject class.

    Conversion failures and detector exceptions are absorbed and reported as
    "no detection"; the fallback to last-known centers belongs to the caller.
    """

    detector: Detector
    subject_class: str = "person"
    conf_threshold: float = 0.70

    def detect(self, frame: VideoFrame, frame_index: int = 0, timestamp: Time = Time(0)) -> List[Detection]:
        image = to_bgr(frame)
        if image is None:
            logger.warning("Could not convert frame %d to an image; treating as no detection", frame_index)
            return []
        return self.detect_image(image, frame_index=frame_index, timestamp=timestamp)

    def detect_image(self, image_bgr: np.ndarray, frame_index: int = 0, timestamp: Time = Time(0)) -> List[Detection]:
        try:
            dets = self.detector.detect(DetectorInput(frame_index=frame_index, timestamp=timestamp, image_bgr=image_bgr))
        except Exception:
            logger.exception("Detector failed on frame %d", frame_index)
            return []
        matched = [d for d in dets if d.class_name == self.subject_class and float(d.score) >= self.conf_threshold]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Detections at %.3fs: %d total, %d %s",
                float(timestamp),
                len(dets),
                len(matched),
                self.subject_class,
            )
        return matched

    def centers(self, frame: VideoFrame, normalized: bool = True, frame_index: int = 0, timestamp: Time = Time(0)) -> List[Point]:
        image = to_bgr(frame)
        if image is None:
            logger.warning("Could not convert frame %d to an image; treating as no detection", frame_index)
            return []
        dets = self.detect_image(image, frame_index=frame_index, timestamp=timestamp)
        size = image_size(image) if normalized else None
        return [box_center(d, size) for d in dets]


def image_size(image: np.ndarray) -> Tuple[int, int]:
    h, w = image.shape[:2]
    return int(w), int(h)


def box_center(det: Detection, size: Optional[Tuple[int, int]] = None) -> Point:
    cx, cy = det.centroid_xy
    if size is None:
        return (float(cx), float(cy))
    w, h = size
    return (float(cx) / max(1, w), float(cy) / max(1, h))
