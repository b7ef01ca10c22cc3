from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from followcam.detection import SubjectDetector, create_detector
from followcam.trajectory import OfflineTrajectoryExtractor
from followcam.utils.config import RecorderConfig, resolve_path
from followcam.utils.logging import setup_logging


def main() -> None:
    ap = argparse.ArgumentParser(description="Extract a smoothed subject trajectory from a recording")
    ap.add_argument("--video", required=True)
    ap.add_argument("--config", default="configs/recording.yaml", help="Recorder YAML")
    ap.add_argument("--out", default=None, help="Write the trajectory as JSON here instead of stdout")
    ap.add_argument("--frame-skip", type=int, default=None)
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()

    base_dir = os.getcwd()
    setup_logging(level=args.log_level)
    cfg = RecorderConfig.load(resolve_path(args.config, base_dir), base_dir=base_dir)

    adapter = SubjectDetector(
        detector=create_detector(cfg.detection.backend, cfg.detection.params),
        subject_class=cfg.detection.subject_class,
        conf_threshold=cfg.detection.conf_threshold,
    )
    extractor = OfflineTrajectoryExtractor.from_config(adapter, cfg.smoothing)
    if args.frame_skip is not None:
        if args.frame_skip < 0:
            ap.error("--frame-skip must be >= 0")
        extractor = replace(extractor, frame_skip=int(args.frame_skip))

    trajectory = extractor.extract(resolve_path(args.video, base_dir))
    text = json.dumps([[x, y] for x, y in trajectory])
    if args.out:
        Path(resolve_path(args.out, base_dir)).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


if __name__ == "__main__":
    main()
