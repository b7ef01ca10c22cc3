from .notifier import LogNotifier, Notifier, QueueNotifier, create_notifier
from .sinks import CsvSink, DirectorySink, JsonlSink, MemorySink, PersistenceSink

__all__ = [
    "CsvSink",
    "DirectorySink",
    "JsonlSink",
    "LogNotifier",
    "MemorySink",
    "Notifier",
    "PersistenceSink",
    "QueueNotifier",
    "create_notifier",
]
