from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Tuple

from followcam.detection.adapter import SubjectDetector
from followcam.detection.gate import DetectionGate
from followcam.utils.types import DetectionResult, Point, Time, VideoFrame


logger = logging.getLogger("followcam.detection.worker")

_Job = Tuple[int, int, Time, VideoFrame]


class DetectionWorker:
    """Runs subject detection off the sample-delivery thread.

    Frames reach the worker through a single-slot queue guarded by a
    ``DetectionGate``: the gate is checked before enqueue, so a frame that
    arrives while inference is in flight is dropped and counted here instead
    of waiting. Each processed frame yields one ``DetectionResult``; empty
    detections fall back to the last non-empty centers.
    """

    def __init__(
        self,
        adapter: SubjectDetector,
        on_result: Callable[[DetectionResult], None],
        gate: Optional[DetectionGate] = None,
        name: str = "followcam-detection",
    ) -> None:
        self._adapter = adapter
        self._on_result = on_result
        self._gate = gate or DetectionGate()
        self._queue: "queue.Queue[Optional[_Job]]" = queue.Queue(maxsize=1)
        self._last_known: Tuple[Point, ...] = ()
        self._generation = 0
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending = 0
        self._submitted = 0
        self._dropped = 0
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def gate(self) -> DetectionGate:
        return self._gate

    @property
    def submitted(self) -> int:
        with self._lock:
            return self._submitted

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def reset(self, seed: Tuple[Point, ...] = ()) -> None:
        """Start a new session; jobs queued or running before this call are discarded."""
        with self._lock:
            self._generation += 1
            self._last_known = tuple(seed)
            self._submitted = 0
            self._dropped = 0

    def submit(self, frame_index: int, timestamp: Time, frame: VideoFrame) -> bool:
        if not self._gate.try_acquire():
            with self._lock:
                self._dropped += 1
            return False
        try:
            copy = frame.detached()
        except Exception:
            self._gate.release()
            raise
        with self._lock:
            self._pending += 1
            job = (self._generation, frame_index, timestamp, copy)
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            self._gate.release()
            with self._idle:
                self._pending -= 1
                self._dropped += 1
                self._idle.notify_all()
            return False
        with self._lock:
            self._submitted += 1
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queued job (if any) has been processed."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def close(self, timeout: Optional[float] = 5.0) -> None:
        if not self._thread.is_alive():
            return
        self._queue.put(None)
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                break
            generation, frame_index, timestamp, frame = job
            try:
                self._process(generation, frame_index, timestamp, frame)
            except Exception:
                logger.exception("Detection job failed at %.3fs", float(timestamp))
            finally:
                self._gate.release()
                with self._idle:
                    self._pending -= 1
                    self._idle.notify_all()

    def _process(self, generation: int, frame_index: int, timestamp: Time, frame: VideoFrame) -> None:
        centers: List[Point] = self._adapter.centers(frame, normalized=True, frame_index=frame_index, timestamp=timestamp)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding detection at %.3fs from a previous session", float(timestamp))
                return
            if centers:
                self._last_known = tuple(centers)
            result = DetectionResult(timestamp=timestamp, centers=self._last_known)
        self._on_result(result)
