from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from followcam.detection.adapter import SubjectDetector, box_center, image_size
from followcam.io.video import VideoReader, VideoReaderConfig
from followcam.trajectory.smoothing import TrajectorySmoother
from followcam.utils.config import SmoothingConfig
from followcam.utils.image import to_bgr
from followcam.utils.types import OptionalPoint, Point


logger = logging.getLogger("followcam.trajectory.extractor")


@dataclass
class OfflineTrajectoryExtractor:
    """Batch subject path for a finished recording.

    Every ``frame_skip + 1``-th frame is run through the detector; the first
    subject box gives that frame's center, a frame with no subject repeats the
    previous center and skipped frames stay absent. Before the first detection
    there is no previous center, so those frames are absent too rather than
    (0, 0), which would otherwise seed the jump-rejection window with a bogus
    point. The raw sequence is then stabilized by ``smoother``. Centers are in
    pixels unless ``normalized``.
    """

    adapter: SubjectDetector
    frame_skip: int = 20
    smoother: TrajectorySmoother = field(default_factory=TrajectorySmoother)
    normalized: bool = False

    def __post_init__(self) -> None:
        if self.frame_skip < 0:
            raise ValueError(f"frame_skip must be >= 0, got {self.frame_skip}")

    @staticmethod
    def from_config(adapter: SubjectDetector, cfg: SmoothingConfig) -> "OfflineTrajectoryExtractor":
        return OfflineTrajectoryExtractor(
            adapter=adapter,
            frame_skip=int(cfg.frame_skip),
            smoother=TrajectorySmoother(
                window_size=int(cfg.window_size),
                max_deviation=float(cfg.max_deviation),
                kernel_size=int(cfg.kernel_size),
                edge_mode=str(cfg.edge_mode),
            ),
        )

    def extract(self, path: str) -> List[Point]:
        centers = self.extract_centers(path)
        smoothed = self.smoother.smooth(centers)
        logger.info(
            "Trajectory for %s: %d frames, %d detected",
            path,
            len(centers),
            sum(1 for c in centers if c is not None),
        )
        return smoothed

    def extract_centers(self, path: str) -> List[OptionalPoint]:
        stride = int(self.frame_skip) + 1
        centers: List[OptionalPoint] = []
        last: OptionalPoint = None
        with VideoReader(VideoReaderConfig(uri=path)) as reader:
            for frame_index, ts, frame in reader:
                if frame_index % stride != 0:
                    centers.append(None)
                    continue
                image = to_bgr(frame)
                if image is None:
                    centers.append(None)
                    continue
                dets = self.adapter.detect_image(image, frame_index=frame_index, timestamp=ts)
                if dets:
                    last = box_center(dets[0], image_size(image) if self.normalized else None)
                centers.append(last)
        return centers
