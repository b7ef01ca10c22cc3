from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from followcam.utils.errors import ConfigurationError
from followcam.utils.types import NANOS_PER_SECOND, Sample, time_from_ns


logger = logging.getLogger("followcam.io.microphone")


@dataclass(frozen=True)
class MicrophoneConfig:
    device: Optional[Union[int, str]] = None
    sample_rate: int = 44100
    channels: int = 1
    block_size: int = 1024

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MicrophoneConfig":
        return MicrophoneConfig(
            device=d.get("device"),
            sample_rate=int(d.get("sample_rate", 44100)),
            channels=int(d.get("channels", 1)),
            block_size=int(d.get("block_size", 1024)),
        )


class MicrophoneSource:
    """sounddevice input stream delivering mono float32 audio samples."""

    def __init__(self, cfg: MicrophoneConfig) -> None:
        self._cfg = cfg
        self._stream = None
        self._overflows = 0

    @property
    def overflows(self) -> int:
        return self._overflows

    def start(self, deliver: Callable[[Sample], None]) -> None:
        import sounddevice as sd

        def _callback(indata: np.ndarray, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
            if status.input_overflow:
                self._overflows += 1
            # stamp the first sample of the block, not the callback time
            now_ns = time.monotonic_ns() - (int(frames) * NANOS_PER_SECOND) // int(self._cfg.sample_rate)
            deliver(Sample.audio(indata.copy(), time_from_ns(now_ns), sample_rate=self._cfg.sample_rate))

        try:
            self._stream = sd.InputStream(
                device=self._cfg.device,
                samplerate=self._cfg.sample_rate,
                channels=self._cfg.channels,
                dtype="float32",
                blocksize=self._cfg.block_size,
                callback=_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise ConfigurationError(f"Failed to open microphone {self._cfg.device!r}: {e}") from e
        logger.info("Microphone started: device=%s rate=%d", self._cfg.device, self._cfg.sample_rate)

    def stop(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        if self._overflows:
            logger.warning("Microphone reported %d input overflows", self._overflows)
