from __future__ import annotations

import csv
import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, List, Optional, Protocol, Sequence, Tuple

from followcam.utils.types import DetectionResult


logger = logging.getLogger("followcam.output.sinks")


def _ensure_parent(path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


@dataclass
class CsvSink:
    path: str
    _f: Optional[IO[str]] = None
    _w: Optional[csv.DictWriter] = None

    def open(self) -> None:
        _ensure_parent(self.path)
        self._f = open(self.path, "w", newline="", encoding="utf-8")
        self._w = csv.DictWriter(self._f, fieldnames=["timestamp_s", "timestamp", "center_index", "x", "y"])
        self._w.writeheader()

    def write(self, r: DetectionResult) -> None:
        if self._w is None:
            raise RuntimeError("CsvSink not opened")
        row = r.to_dict()
        # frames with no known center still get a row so the timeline stays complete
        centers = row["centers"] or [[None, None]]
        for i, (x, y) in enumerate(centers):
            self._w.writerow(
                {
                    "timestamp_s": row["timestamp_s"],
                    "timestamp": row["timestamp"],
                    "center_index": i,
                    "x": x,
                    "y": y,
                }
            )

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
        self._f = None
        self._w = None


@dataclass
class JsonlSink:
    path: str
    _f: Optional[IO[str]] = None

    def open(self) -> None:
        _ensure_parent(self.path)
        self._f = open(self.path, "w", encoding="utf-8")

    def write(self, r: DetectionResult) -> None:
        if self._f is None:
            raise RuntimeError("JsonlSink not opened")
        self._f.write(json.dumps(r.to_dict(), ensure_ascii=False) + "\n")

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
        self._f = None


class PersistenceSink(Protocol):
    def store(self, video_path: Path, detection_log: Sequence[DetectionResult]) -> Path:
        ...


@dataclass
class DirectorySink(PersistenceSink):
    """Moves a finished scratch recording into ``destination_dir``.

    The detection log is written next to the video as ``<name>.detections.jsonl``
    (or ``.csv``); it is skipped when the log is empty.
    """

    destination_dir: str
    log_format: str = "jsonl"

    def store(self, video_path: Path, detection_log: Sequence[DetectionResult]) -> Path:
        dest_dir = Path(self.destination_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / Path(video_path).name
        shutil.move(str(video_path), str(dest))
        if detection_log:
            log_path = dest.with_suffix(f".detections.{self.log_format}")
            sink = CsvSink(str(log_path)) if self.log_format == "csv" else JsonlSink(str(log_path))
            sink.open()
            try:
                for r in detection_log:
                    sink.write(r)
            finally:
                sink.close()
            logger.info("Stored %s with %d detection entries (%s)", dest, len(detection_log), log_path.name)
        else:
            logger.info("Stored %s", dest)
        return dest


@dataclass
class MemorySink(PersistenceSink):
    """Keeps stored recordings in memory; the file stays where the writer left it."""

    stored: List[Tuple[Path, List[DetectionResult]]] = field(default_factory=list)

    def store(self, video_path: Path, detection_log: Sequence[DetectionResult]) -> Path:
        self.stored.append((Path(video_path), list(detection_log)))
        return Path(video_path)
