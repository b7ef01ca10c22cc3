import threading
from fractions import Fraction

import numpy as np
import pytest

from followcam.detection.adapter import SubjectDetector
from followcam.detection.mock import MockDetector
from followcam.detection.worker import DetectionWorker
from followcam.utils.types import Detection, VideoFrame


def _frame() -> VideoFrame:
    return VideoFrame(data=np.zeros((48, 64, 3), dtype=np.uint8))


def _det(x: float, y: float) -> Detection:
    return Detection(bbox_xyxy=(x, y, x + 10.0, y + 10.0), score=0.9, class_id=0, class_name="person")


class _BlockingDetector:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.proceed = threading.Event()

    def detect(self, inp):
        self.entered.set()
        self.proceed.wait(5.0)
        return [_det(10, 10)]


def test_frames_dropped_while_detection_in_flight() -> None:
    det = _BlockingDetector()
    results = []
    worker = DetectionWorker(SubjectDetector(det), results.append)
    try:
        assert worker.submit(0, Fraction(0), _frame())
        assert det.entered.wait(5.0)
        assert not worker.submit(1, Fraction(1, 30), _frame())
        assert not worker.submit(2, Fraction(2, 30), _frame())
        assert worker.dropped == 2

        det.proceed.set()
        assert worker.wait_idle(5.0)
        assert [r.timestamp for r in results] == [Fraction(0)]
        assert worker.submit(3, Fraction(3, 30), _frame())
        assert worker.wait_idle(5.0)
        assert len(results) == 2
    finally:
        det.proceed.set()
        worker.close()


def test_empty_detection_repeats_last_known_centers() -> None:
    mock = MockDetector([_det(10, 10)])
    results = []
    worker = DetectionWorker(SubjectDetector(mock), results.append)
    try:
        worker.submit(0, Fraction(0), _frame())
        worker.wait_idle(5.0)
        mock.detections = []
        worker.submit(1, Fraction(1, 30), _frame())
        worker.wait_idle(5.0)
    finally:
        worker.close()

    assert results[0].centers == ((15.0 / 64.0, 15.0 / 48.0),)
    assert results[1].centers == results[0].centers
    assert results[1].timestamp == Fraction(1, 30)


def test_no_detection_before_any_subject_gives_empty_centers() -> None:
    results = []
    worker = DetectionWorker(SubjectDetector(MockDetector()), results.append)
    try:
        worker.submit(0, Fraction(0), _frame())
        worker.wait_idle(5.0)
    finally:
        worker.close()
    assert results[0].centers == ()


def test_gate_released_when_result_handler_fails() -> None:
    calls = []

    def on_result(r) -> None:
        calls.append(r)
        raise RuntimeError("consumer failed")

    worker = DetectionWorker(SubjectDetector(MockDetector([_det(0, 0)])), on_result)
    try:
        assert worker.submit(0, Fraction(0), _frame())
        assert worker.wait_idle(5.0)
        assert not worker.gate.busy
        assert worker.submit(1, Fraction(1, 30), _frame())
        assert worker.wait_idle(5.0)
    finally:
        worker.close()
    assert len(calls) == 2


class _BlockingOnce(_BlockingDetector):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def detect(self, inp):
        self.calls += 1
        if self.calls == 1:
            return super().detect(inp)
        return []


def test_reset_discards_job_from_previous_session() -> None:
    det = _BlockingOnce()
    results = []
    worker = DetectionWorker(SubjectDetector(det), results.append)
    try:
        worker.submit(0, Fraction(0), _frame())
        assert det.entered.wait(5.0)
        worker.reset()
        det.proceed.set()
        assert worker.wait_idle(5.0)
        assert results == []

        worker.submit(1, Fraction(1), _frame())
        assert worker.wait_idle(5.0)
    finally:
        det.proceed.set()
        worker.close()
    assert [r.centers for r in results] == [()]


class _UncopyableFrame(VideoFrame):
    def detached(self) -> VideoFrame:
        raise MemoryError("no room for a copy")


def test_gate_released_when_frame_copy_fails() -> None:
    results = []
    worker = DetectionWorker(SubjectDetector(MockDetector([_det(0, 0)])), results.append)
    try:
        with pytest.raises(MemoryError):
            worker.submit(0, Fraction(0), _UncopyableFrame(data=np.zeros((48, 64, 3), dtype=np.uint8)))
        assert not worker.gate.busy
        assert worker.wait_idle(1.0)
        assert worker.submit(1, Fraction(1, 30), _frame())
        assert worker.wait_idle(5.0)
    finally:
        worker.close()
    assert len(results) == 1
