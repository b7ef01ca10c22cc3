from __future__ import annotations

import threading


class DetectionGate:
    """Single-flight gate: at most one detection job holds it at a time.

    ``try_acquire`` never blocks. A caller that loses the race drops its frame
    from the detection path instead of queueing it, so capture is never slowed
    by inference. Every successful ``try_acquire`` must be paired with exactly
    one ``release``, on the failure path too.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._busy = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._busy:
                return False
            self._busy = True
            return True

    def release(self) -> None:
        with self._lock:
            self._busy = False

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy
