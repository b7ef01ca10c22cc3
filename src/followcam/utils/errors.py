from __future__ import annotations


class ConfigurationError(ValueError):
    """No usable capture format, device or parameter set for a session."""


class RecordingError(RuntimeError):
    pass


class WriterError(RecordingError):
    """The container or one of its tracks could not be created or started."""


class WriterFault(RecordingError):
    """The encoder failed mid-session; the file was closed but is not trustworthy."""


class DecodeError(RuntimeError):
    pass
