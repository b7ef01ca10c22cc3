from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

import numpy as np

from followcam.utils.types import Detection, Time


@dataclass(frozen=True)
class DetectorInput:
    frame_index: int
    timestamp: Time
    image_bgr: np.ndarray


class Detector(Protocol):
    def detect(self, inp: DetectorInput) -> List[Detection]:
        ...
