import csv
import json
from fractions import Fraction

import pytest

from followcam.output.notifier import LogNotifier, QueueNotifier, create_notifier
from followcam.output.sinks import DirectorySink
from followcam.utils.errors import ConfigurationError
from followcam.utils.types import DetectionResult, RecordingFinished


def _log():
    return [
        DetectionResult(timestamp=Fraction(1, 30), centers=((0.25, 0.5),)),
        DetectionResult(timestamp=Fraction(2, 30), centers=()),
    ]


def test_directory_sink_moves_video_and_writes_jsonl(tmp_path) -> None:
    src = tmp_path / "scratch" / "abc.mp4"
    src.parent.mkdir()
    src.write_bytes(b"\x00")
    dest = DirectorySink(str(tmp_path / "out")).store(src, _log())

    assert dest == tmp_path / "out" / "abc.mp4"
    assert dest.exists() and not src.exists()
    lines = (tmp_path / "out" / "abc.detections.jsonl").read_text(encoding="utf-8").splitlines()
    rows = [json.loads(x) for x in lines]
    assert rows[0] == {"timestamp_s": pytest.approx(1 / 30), "timestamp": "1/30", "centers": [[0.25, 0.5]]}
    assert rows[1]["centers"] == []


def test_directory_sink_csv_and_empty_log(tmp_path) -> None:
    a = tmp_path / "a.mp4"
    a.write_bytes(b"\x00")
    DirectorySink(str(tmp_path / "out"), log_format="csv").store(a, _log())
    with open(tmp_path / "out" / "a.detections.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["timestamp"] for r in rows] == ["1/30", "1/15"]
    assert rows[1]["x"] == ""

    b = tmp_path / "b.mp4"
    b.write_bytes(b"\x00")
    DirectorySink(str(tmp_path / "out")).store(b, [])
    assert not (tmp_path / "out" / "b.detections.jsonl").exists()


def test_notifiers() -> None:
    event = RecordingFinished(path="x.mp4", duration_s=1.0, video_frames=30, detections=3, slow_motion=False)
    q = create_notifier({"type": "queue"})
    assert isinstance(q, QueueNotifier)
    assert q.poll() is None
    q.notify_finished(event)
    assert q.poll(timeout=1.0) == event
    assert isinstance(create_notifier({}), LogNotifier)
    create_notifier({}).notify_finished(event)
    with pytest.raises(ConfigurationError):
        create_notifier({"type": "email"})
