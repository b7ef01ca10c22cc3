from fractions import Fraction

import numpy as np
import pytest

from followcam.detection.adapter import SubjectDetector, box_center
from followcam.detection.mock import BlobDetector, MockDetector
from followcam.detection.registry import create_detector
from followcam.utils.errors import ConfigurationError
from followcam.utils.types import Detection, VideoFrame


def _det(x: float, y: float, score: float = 0.9, name: str = "person") -> Detection:
    return Detection(bbox_xyxy=(x, y, x + 10.0, y + 10.0), score=score, class_id=0, class_name=name)


def _frame() -> VideoFrame:
    return VideoFrame(data=np.zeros((48, 64, 3), dtype=np.uint8))


def test_filters_by_class_and_confidence_keeping_order() -> None:
    dets = [_det(30, 0), _det(0, 0, name="dog"), _det(10, 0, score=0.5), _det(0, 20), _det(5, 5, score=0.70)]
    adapter = SubjectDetector(MockDetector(dets), subject_class="person", conf_threshold=0.70)
    out = adapter.detect(_frame())
    assert out == [dets[0], dets[3], dets[4]]


def test_unconvertible_frame_is_no_detection() -> None:
    mock = MockDetector([_det(0, 0)])
    adapter = SubjectDetector(mock)
    assert adapter.detect(VideoFrame(data=np.zeros((4, 4), dtype=np.uint8), pixel_format="p010le")) == []
    assert mock.calls == 0


def test_detector_exception_is_no_detection() -> None:
    class Broken:
        def detect(self, inp):
            raise RuntimeError("model crashed")

    assert SubjectDetector(Broken()).detect(_frame(), frame_index=3, timestamp=Fraction(1, 10)) == []


def test_centers_normalized_and_pixel() -> None:
    adapter = SubjectDetector(MockDetector([_det(10, 10)]))
    assert adapter.centers(_frame(), normalized=True) == [(15.0 / 64.0, 15.0 / 48.0)]
    assert adapter.centers(_frame(), normalized=False) == [(15.0, 15.0)]
    assert box_center(_det(0, 0)) == (5.0, 5.0)


def test_blob_detector_finds_bright_square() -> None:
    img = np.zeros((48, 64, 3), dtype=np.uint8)
    img[8:24, 20:36] = 255
    adapter = SubjectDetector(BlobDetector())
    out = adapter.detect(VideoFrame(data=img))
    assert len(out) == 1
    assert out[0].bbox_xyxy == (20.0, 8.0, 36.0, 24.0)


def test_registry_backends() -> None:
    assert isinstance(create_detector("mock", {}), MockDetector)
    blob = create_detector("blob", {"threshold": 50, "class_name": "ball"})
    assert isinstance(blob, BlobDetector) and blob.class_name == "ball" and blob.threshold == 50
    with pytest.raises(ConfigurationError):
        create_detector("nope", {})
