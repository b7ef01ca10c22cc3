from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from followcam.utils.errors import ConfigurationError
from followcam.utils.types import RecordingFinished


logger = logging.getLogger("followcam.output.notifier")


class Notifier(Protocol):
    def notify_finished(self, event: RecordingFinished) -> None:
        ...


@dataclass
class LogNotifier(Notifier):
    level: str = "INFO"

    def notify_finished(self, event: RecordingFinished) -> None:
        lvl = getattr(logging, str(self.level).upper(), logging.INFO)
        logger.log(
            lvl,
            "RECORDING_FINISHED path=%s duration=%.3fs frames=%d detections=%d slow_motion=%s",
            event.path,
            event.duration_s,
            event.video_frames,
            event.detections,
            event.slow_motion,
        )


@dataclass
class QueueNotifier(Notifier):
    """Hands events to whichever thread owns the UI.

    ``notify_finished`` may be called from any thread; the consumer drains the
    queue with ``poll`` from its own loop, so callbacks never run on the
    writer's finishing thread.
    """

    maxsize: int = 0
    _queue: "queue.Queue[RecordingFinished]" = field(init=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=int(self.maxsize))

    def notify_finished(self, event: RecordingFinished) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning("Notification queue full; dropping event for %s", event.path)

    def poll(self, timeout: Optional[float] = None) -> Optional[RecordingFinished]:
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


def create_notifier(cfg: Dict[str, Any]) -> Notifier:
    t = str(cfg.get("type", "log")).lower()
    if t == "log":
        return LogNotifier(level=str(cfg.get("level", "INFO")))
    if t == "queue":
        return QueueNotifier(maxsize=int(cfg.get("maxsize", 0)))
    raise ConfigurationError(f"Unknown notifier.type: {t}")
