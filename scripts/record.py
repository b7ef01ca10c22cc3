from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from followcam.detection import SubjectDetector, create_detector
from followcam.io import CameraHandler, CameraHandlerConfig, MicrophoneConfig, MicrophoneSource, SampleDelivery
from followcam.output import DirectorySink, create_notifier
from followcam.recording import CapturePipeline, CapturePipelineConfig
from followcam.utils.config import RecorderConfig, resolve_path
from followcam.utils.logging import setup_logging


logger = logging.getLogger("followcam.scripts.record")


def main() -> None:
    ap = argparse.ArgumentParser(description="Record one clip from the camera with subject detection")
    ap.add_argument("--config", default="configs/recording.yaml", help="Recorder YAML")
    ap.add_argument("--delay", type=float, default=3.0, help="Seconds before recording starts")
    ap.add_argument("--duration", type=float, default=10.0, help="Recording length in seconds")
    ap.add_argument("--slow-motion", action="store_true", help="Record a slow-motion clip")
    ap.add_argument("--no-detection", action="store_true")
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--log-file", default=None)
    args = ap.parse_args()

    base_dir = os.getcwd()
    setup_logging(level=args.log_level, log_file=args.log_file)
    cfg = RecorderConfig.load(resolve_path(args.config, base_dir), base_dir=base_dir)

    adapter = None
    if cfg.detection.enabled and not args.no_detection:
        adapter = SubjectDetector(
            detector=create_detector(cfg.detection.backend, cfg.detection.params),
            subject_class=cfg.detection.subject_class,
            conf_threshold=cfg.detection.conf_threshold,
        )

    pipeline = CapturePipeline(
        CapturePipelineConfig(
            video=cfg.video,
            audio=cfg.audio,
            slow_motion=cfg.slow_motion,
            output=cfg.output,
            detection_enabled=adapter is not None,
        ),
        sink=DirectorySink(cfg.output.destination_dir, log_format=cfg.output.log_format),
        adapter=adapter,
        notifier=create_notifier(cfg.notifier),
    )
    slow = bool(args.slow_motion or cfg.slow_motion.enabled)
    pipeline.set_slow_motion(slow)

    frame_rate = cfg.slow_motion.capture_frame_rate if slow else cfg.video.frame_rate
    camera = CameraHandler(CameraHandlerConfig.from_dict(cfg.camera, frame_rate, cfg.video.width, cfg.video.height))
    microphone = None
    if cfg.audio.enabled and not slow:
        mic_cfg = dict(cfg.microphone)
        mic_cfg.setdefault("sample_rate", cfg.audio.sample_rate)
        mic_cfg.setdefault("channels", cfg.audio.channels)
        microphone = MicrophoneSource(MicrophoneConfig.from_dict(mic_cfg))

    delivery = SampleDelivery(pipeline.handle_sample)
    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())

    camera.start(delivery.submit)
    if microphone is not None:
        microphone.start(delivery.submit)
    try:
        pipeline.start_with_delay(args.delay, duration_s=None)
        done.wait(args.delay + args.duration)
        future = pipeline.stop()
        if future is not None:
            stored = future.result()
            logger.info("Recording saved to %s", stored)
        elif pipeline.last_error is not None:
            logger.error("Recording failed: %s", pipeline.last_error)
    finally:
        camera.stop()
        if microphone is not None:
            microphone.stop()
        delivery.close()
        pipeline.close()


if __name__ == "__main__":
    main()
