from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import cv2

from followcam.utils.errors import ConfigurationError
from followcam.utils.types import Sample, time_from_ns


@dataclass(frozen=True)
class ReconnectConfig:
    enabled: bool = True
    max_retries: int = 3
    backoff_s: float = 1.0
    reset_on_success: bool = True


@dataclass(frozen=True)
class CameraHandlerConfig:
    source: Union[int, str]
    frame_rate: int
    width: int
    height: int
    mirror: bool
    reconnect: ReconnectConfig

    @staticmethod
    def from_dict(d: Dict[str, Any], frame_rate: int, width: int, height: int) -> "CameraHandlerConfig":
        source = d.get("source", 0)
        if isinstance(source, str) and source.isdigit():
            source = int(source)
        reconnect = dict(d.get("reconnect", {}) or {})
        return CameraHandlerConfig(
            source=source,
            frame_rate=int(d.get("frame_rate", frame_rate)),
            width=int(d.get("width", width)),
            height=int(d.get("height", height)),
            mirror=bool(d.get("mirror", False)),
            reconnect=ReconnectConfig(
                enabled=bool(reconnect.get("enabled", True)),
                max_retries=int(reconnect.get("max_retries", 3)),
                backoff_s=float(reconnect.get("backoff_s", 1.0)),
                reset_on_success=bool(reconnect.get("reset_on_success", True)),
            ),
        )


logger = logging.getLogger("followcam.io.camera")


class CameraHandler:
    """OpenCV capture source that pushes video samples from a read thread.

    Timestamps come from the monotonic clock at read time so they share a
    time base with the microphone source.
    """

    def __init__(self, cfg: CameraHandlerConfig) -> None:
        self._cfg = cfg
        self._cap: Optional[cv2.VideoCapture] = None
        self._retries = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._frames = 0
        if not self._open():
            raise ConfigurationError(f"Failed to open camera source: {cfg.source}")

    @property
    def frames_read(self) -> int:
        return self._frames

    def start(self, deliver: Callable[[Sample], None]) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, args=(deliver,), name="followcam-camera", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self._close()

    def _run(self, deliver: Callable[[Sample], None]) -> None:
        while not self._stop.is_set():
            cap = self._cap
            if cap is None:
                if not self._try_reconnect():
                    logger.error("Camera source unavailable: %s", self._cfg.source)
                    break
                continue

            ok, frame = cap.read()
            if not ok:
                logger.warning("Failed to read frame from camera: %s", self._cfg.source)
                self._close()
                continue
            ts = time_from_ns(time.monotonic_ns())

            if self._cfg.reconnect.enabled and self._cfg.reconnect.reset_on_success:
                self._retries = 0
            if self._cfg.mirror:
                frame = cv2.flip(frame, 1)
            self._frames += 1
            deliver(Sample.video(frame, ts, pixel_format="bgr24"))

    def _try_reconnect(self) -> bool:
        if not self._cfg.reconnect.enabled:
            return False
        if self._cfg.reconnect.max_retries > 0 and self._retries >= self._cfg.reconnect.max_retries:
            logger.error("Reconnect retries exhausted for camera: %s", self._cfg.source)
            return False
        self._retries += 1
        logger.info("Reconnecting to camera (%d): %s", self._retries, self._cfg.source)
        if self._stop.wait(max(0.0, float(self._cfg.reconnect.backoff_s))):
            return False
        return self._open()

    def _open(self) -> bool:
        self._close()
        cap = cv2.VideoCapture(self._cfg.source)
        if not cap.isOpened():
            logger.error("Failed to open camera: %s", self._cfg.source)
            return False
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(self._cfg.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(self._cfg.height))
        cap.set(cv2.CAP_PROP_FPS, float(self._cfg.frame_rate))
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        actual_fps = cap.get(cv2.CAP_PROP_FPS)
        if actual_fps and actual_fps + 1e-3 < self._cfg.frame_rate:
            logger.warning("Camera delivers %.1f fps, requested %d", actual_fps, self._cfg.frame_rate)
        self._cap = cap
        return True

    def _close(self) -> None:
        if self._cap is not None:
            self._cap.release()
        self._cap = None
