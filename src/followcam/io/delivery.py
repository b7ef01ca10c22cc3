from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

from followcam.utils.types import Sample


logger = logging.getLogger("followcam.io.delivery")


class SampleDelivery:
    """Serializes samples from all capture sources onto one thread.

    Sources call ``submit`` from their own threads; ``handler`` only ever runs
    on the delivery thread, so video and audio callbacks never overlap. A full
    queue drops the sample rather than blocking the source.
    """

    def __init__(self, handler: Callable[[Sample], object], maxsize: int = 64) -> None:
        self._handler = handler
        self._queue: "queue.Queue[Optional[Sample]]" = queue.Queue(maxsize=int(maxsize))
        self._dropped = 0
        self._thread = threading.Thread(target=self._run, name="followcam-delivery", daemon=True)
        self._thread.start()

    @property
    def dropped(self) -> int:
        return self._dropped

    def submit(self, sample: Sample) -> bool:
        try:
            self._queue.put_nowait(sample)
        except queue.Full:
            self._dropped += 1
            if self._dropped % 100 == 1:
                logger.warning("Delivery queue full; %d samples dropped so far", self._dropped)
            return False
        return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self._queue.put(None)
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            sample = self._queue.get()
            if sample is None:
                break
            try:
                self._handler(sample)
            except Exception:
                logger.exception("Sample handler failed for %s sample at %.4fs", sample.kind, float(sample.pts))
