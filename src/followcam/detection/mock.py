from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import cv2

from followcam.detection.base import Detector, DetectorInput
from followcam.utils.types import Detection


@dataclass
class MockDetector(Detector):
    detections: List[Detection] = field(default_factory=list)
    calls: int = 0

    def detect(self, inp: DetectorInput) -> List[Detection]:
        _ = inp
        self.calls += 1
        return list(self.detections)


@dataclass
class BlobDetector(Detector):
    """Reports every bright blob as one box of ``class_name``.

    Stand-in for a real model when the scene is synthetic (tests, demos): a
    subject drawn as a light shape on a dark background is found with a plain
    threshold + contour pass.
    """

    class_name: str = "person"
    threshold: int = 127
    min_area_px: float = 4.0
    score: float = 0.99

    def detect(self, inp: DetectorInput) -> List[Detection]:
        gray = cv2.cvtColor(inp.image_bgr, cv2.COLOR_BGR2GRAY)
        _, mask = cv2.threshold(gray, int(self.threshold), 255, cv2.THRESH_BINARY)
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        boxes = []
        for c in contours:
            x, y, w, h = cv2.boundingRect(c)
            if float(w * h) < self.min_area_px:
                continue
            boxes.append((x, y, w, h))
        # contour order depends on the scan; report left-to-right like a model would
        boxes.sort(key=lambda b: (b[0], b[1]))
        return [
            Detection(
                bbox_xyxy=(float(x), float(y), float(x + w), float(y + h)),
                score=float(self.score),
                class_id=0,
                class_name=self.class_name,
            )
            for x, y, w, h in boxes
        ]
