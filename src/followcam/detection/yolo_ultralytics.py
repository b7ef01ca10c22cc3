from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from followcam.detection.base import Detector, DetectorInput
from followcam.utils.types import Detection


logger = logging.getLogger("followcam.detection.yolo")


@dataclass
class UltralyticsYoloDetector(Detector):
    """YOLO person detector for live frames.

    ``class_whitelist`` names are resolved to model class ids once at load time
    and passed to ``predict`` so the model itself skips other classes.
    """

    model_path: str = "yolo11s.pt"
    conf_threshold: float = 0.70
    iou_threshold: float = 0.5
    device: Optional[str] = None
    class_whitelist: Optional[List[str]] = None
    image_size: int = 640
    max_det: int = 10

    def __post_init__(self) -> None:
        from ultralytics import YOLO

        self._model = YOLO(self.model_path)
        self._names = {int(k): str(v) for k, v in dict(self._model.names).items()}
        self._class_ids: Optional[List[int]] = None
        if self.class_whitelist is not None:
            wanted = set(self.class_whitelist)
            self._class_ids = sorted(i for i, n in self._names.items() if n in wanted)
            missing = wanted - {self._names[i] for i in self._class_ids}
            if missing:
                logger.warning("Model %s has no classes named %s", self.model_path, sorted(missing))
        logger.info("Loaded detector model %s (classes=%s)", self.model_path, self._class_ids or "all")

    def detect(self, inp: DetectorInput) -> List[Detection]:
        results = self._model.predict(
            source=inp.image_bgr,
            conf=self.conf_threshold,
            iou=self.iou_threshold,
            device=self.device,
            classes=self._class_ids,
            imgsz=self.image_size,
            max_det=self.max_det,
            verbose=False,
        )
        if not results or results[0].boxes is None:
            return []
        boxes = results[0].boxes
        xyxy = boxes.xyxy.cpu().numpy()
        scores = boxes.conf.cpu().numpy()
        ids = boxes.cls.cpu().numpy().astype(int)
        return [
            Detection(
                bbox_xyxy=(float(x1), float(y1), float(x2), float(y2)),
                score=float(s),
                class_id=int(c),
                class_name=self._names.get(int(c), str(int(c))),
            )
            for (x1, y1, x2, y2), s, c in zip(xyxy, scores, ids)
        ]
