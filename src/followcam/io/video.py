from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterator, Optional, Tuple

import av
import av.error
import numpy as np

from followcam.utils.errors import DecodeError
from followcam.utils.types import Time, VideoFrame


logger = logging.getLogger("followcam.io.video")


@dataclass(frozen=True)
class VideoReaderConfig:
    uri: str
    pixel_format: str = "bgr24"
    thread_type: str = "AUTO"


class VideoReader:
    """Sequential decoder for a recorded file.

    Opening the file, finding a video track and starting the decoder are
    checked up front; any of them failing raises ``DecodeError``. A decode
    error in the middle of the stream also raises instead of ending the
    iteration early, so callers never mistake a truncated read for the end of
    the file.
    """

    def __init__(self, cfg: VideoReaderConfig) -> None:
        self._cfg = cfg
        try:
            self._container = av.open(cfg.uri, mode="r")
        except (av.error.FFmpegError, OSError) as e:
            raise DecodeError(f"Failed to open video source: {cfg.uri}") from e
        if not self._container.streams.video:
            self._container.close()
            raise DecodeError(f"No video track in source: {cfg.uri}")
        self._stream = self._container.streams.video[0]
        try:
            self._stream.thread_type = cfg.thread_type
        except (ValueError, AttributeError):
            logger.debug("Decoder threading not configurable for %s", cfg.uri)
        self._frame_index = 0

    @property
    def fps(self) -> Optional[Fraction]:
        rate = self._stream.average_rate or self._stream.guessed_rate
        return Fraction(rate) if rate else None

    @property
    def frame_count(self) -> int:
        return int(self._stream.frames or 0)

    @property
    def size(self) -> Tuple[int, int]:
        cc = self._stream.codec_context
        return int(cc.width), int(cc.height)

    def __iter__(self) -> Iterator[Tuple[int, Time, VideoFrame]]:
        try:
            for frame in self._container.decode(self._stream):
                data = frame.to_ndarray(format=self._cfg.pixel_format)
                ts = self._timestamp(frame)
                fi = self._frame_index
                self._frame_index += 1
                yield fi, ts, VideoFrame(data=np.ascontiguousarray(data), pixel_format=self._cfg.pixel_format)
        except av.error.FFmpegError as e:
            raise DecodeError(f"Decode failed at frame {self._frame_index} of {self._cfg.uri}: {e}") from e

    def _timestamp(self, frame: av.VideoFrame) -> Time:
        if frame.pts is not None and frame.time_base is not None:
            return Fraction(frame.pts) * Fraction(frame.time_base)
        rate = self.fps
        if rate:
            return Fraction(self._frame_index) / rate
        return Fraction(self._frame_index)

    def close(self) -> None:
        self._container.close()

    def __enter__(self) -> "VideoReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
