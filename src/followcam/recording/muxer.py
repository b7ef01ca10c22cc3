from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from fractions import Fraction
from pathlib import Path
from typing import Iterable, Optional

import av
import av.error
import numpy as np

from followcam.utils.config import AudioConfig, VideoConfig
from followcam.utils.errors import WriterError, WriterFault
from followcam.utils.image import to_bgr
from followcam.utils.types import AudioChunk, Sample, SampleKind, Time, VideoFrame, WriterState


logger = logging.getLogger("followcam.recording.muxer")

# pixel layouts PyAV can wrap without going through OpenCV first
_NATIVE_FORMATS = {"bgr24", "rgb24", "bgra", "rgba", "gray", "yuv420p"}
_DEFAULT_AUDIO_FRAME_SIZE = 1024


def pick_video_codec(candidates: Iterable[str]) -> str:
    tried = []
    for name in candidates:
        tried.append(name)
        try:
            av.Codec(name, "w")
        except (ValueError, av.error.FFmpegError):
            logger.debug("Video encoder not available: %s", name)
            continue
        return name
    raise WriterError(f"No usable video encoder among: {', '.join(tried)}")


def _ticks(delta: Time, time_base: Fraction) -> int:
    return int(round(Fraction(delta) / time_base))


def _layout(channels: int) -> str:
    return "mono" if int(channels) == 1 else "stereo"


class WriterSession:
    """One output container with a video track and an optional audio track.

    Lifecycle is ``idle -> writing -> finishing -> finished | failed``. Appends
    are only accepted while writing and never raise; encoder faults are stored
    and surface through the future returned by ``finish``. The first appended
    video sample latches the time origin for both tracks.
    """

    def __init__(
        self,
        path: Path,
        container: av.container.OutputContainer,
        video_stream: av.video.stream.VideoStream,
        audio_stream: Optional[av.audio.stream.AudioStream],
        video_cfg: VideoConfig,
        audio_cfg: AudioConfig,
        slow_motion: bool,
    ) -> None:
        self.path = path
        self._container = container
        self._video = video_stream
        self._audio = audio_stream
        self._video_cfg = video_cfg
        self._audio_cfg = audio_cfg
        self._slow_motion = bool(slow_motion)

        self._lock = threading.Lock()
        self._state = WriterState.IDLE
        self._video_done = False
        self._audio_done = audio_stream is None
        self._fault: Optional[BaseException] = None
        self._released = False
        self._finish_future: Optional["Future[Path]"] = None

        self._origin: Optional[Time] = None
        self._last_video_ts: Optional[Time] = None
        self._last_video_pts: Optional[int] = None
        self._video_frames = 0
        self._video_tb = Fraction(1, int(video_cfg.timescale))

        self._audio_rate = audio_cfg.rate_for(slow_motion)
        self._audio_tb = Fraction(1, self._audio_rate)
        self._audio_start: Optional[int] = None
        self._audio_in_samples = 0
        self._audio_out_samples = 0
        self._audio_frames = 0
        self._resampler: Optional[av.AudioResampler] = None
        self._fifo: Optional[av.AudioFifo] = None

    @property
    def state(self) -> WriterState:
        with self._lock:
            return self._state

    @property
    def origin(self) -> Optional[Time]:
        return self._origin

    @property
    def last_video_timestamp(self) -> Optional[Time]:
        return self._last_video_ts

    @property
    def video_frames_written(self) -> int:
        return self._video_frames

    @property
    def audio_frames_written(self) -> int:
        return self._audio_frames

    @property
    def codec_name(self) -> str:
        return str(self._video.codec_context.name)

    @property
    def slow_motion(self) -> bool:
        return self._slow_motion

    @property
    def fault(self) -> Optional[BaseException]:
        return self._fault

    def start(self) -> None:
        with self._lock:
            if self._state is not WriterState.IDLE:
                raise WriterError(f"Cannot start writer in state {self._state.value}")
            try:
                self._container.start_encoding()
            except (av.error.FFmpegError, ValueError) as e:
                self._state = WriterState.FAILED
                self._release()
                raise WriterError(f"Failed to start writing {self.path}: {e}") from e
            self._state = WriterState.WRITING
        logger.info(
            "Writer started: %s codec=%s %dx%d slow_motion=%s",
            self.path,
            self.codec_name,
            self._video_cfg.width,
            self._video_cfg.height,
            self._slow_motion,
        )

    def is_ready_for_more(self, kind: SampleKind) -> bool:
        with self._lock:
            return self._accepting(kind)

    def append_video(self, sample: Sample) -> bool:
        with self._lock:
            if not self._accepting("video") or not isinstance(sample.payload, VideoFrame):
                return False
            if self._origin is None:
                self._origin = sample.pts
            if sample.pts < self._origin:
                return False
            av_frame = self._video_frame(sample.payload)
            if av_frame is None:
                return False
            pts = _ticks(sample.pts - self._origin, self._video_tb)
            if self._last_video_pts is not None and pts <= self._last_video_pts:
                pts = self._last_video_pts + 1
            av_frame.pts = pts
            av_frame.time_base = self._video_tb
            try:
                for packet in self._video.encode(av_frame):
                    self._container.mux(packet)
            except (av.error.FFmpegError, ValueError) as e:
                self._record_fault(e)
                return False
            self._last_video_pts = pts
            self._last_video_ts = sample.pts
            self._video_frames += 1
            return True

    def append_audio(self, sample: Sample) -> bool:
        with self._lock:
            if not self._accepting("audio") or not isinstance(sample.payload, AudioChunk):
                return False
            if self._slow_motion:
                # no time-stretched audio; slow-motion recordings carry a silent track
                return False
            if self._origin is None or sample.pts < self._origin:
                return False
            chunk = sample.payload
            if chunk.num_samples == 0:
                return False
            if self._audio_start is None:
                self._audio_start = _ticks(sample.pts - self._origin, self._audio_tb)
            try:
                self._push_audio(chunk)
                self._drain_audio(final=False, cap_pts=None)
            except (av.error.FFmpegError, ValueError) as e:
                self._record_fault(e)
                return False
            return True

    def mark_video_finished(self) -> None:
        with self._lock:
            self._video_done = True
            self._maybe_finishing()

    def mark_audio_finished(self) -> None:
        with self._lock:
            self._audio_done = True
            self._maybe_finishing()

    def finish(self, last_video_timestamp: Optional[Time] = None) -> "Future[Path]":
        """Close both tracks and flush the container on a background thread.

        ``last_video_timestamp`` (when nonzero) caps the session: audio past
        it is not written. Calling ``finish`` again returns the same future.
        """
        with self._lock:
            if self._finish_future is not None:
                return self._finish_future
            future: "Future[Path]" = Future()
            future.set_running_or_notify_cancel()
            self._finish_future = future
            self._video_done = True
            self._audio_done = True
            started = self._state in (WriterState.WRITING, WriterState.FINISHING)
            if self._state in (WriterState.IDLE, WriterState.WRITING):
                self._state = WriterState.FINISHING
        cap = last_video_timestamp if last_video_timestamp else None
        if not started:
            self._finalize(future, cap, flush=False)
            return future
        threading.Thread(
            target=self._finalize,
            args=(future, cap, True),
            name="followcam-writer-finish",
            daemon=True,
        ).start()
        return future

    def _accepting(self, kind: SampleKind) -> bool:
        if self._state is not WriterState.WRITING or self._fault is not None:
            return False
        if kind == "video":
            return not self._video_done
        return self._audio is not None and not self._audio_done

    def _maybe_finishing(self) -> None:
        if self._video_done and self._audio_done and self._state is WriterState.WRITING:
            self._state = WriterState.FINISHING

    def _record_fault(self, e: BaseException) -> None:
        if self._fault is None:
            logger.error("Writer fault on %s: %s", self.path, e)
            self._fault = e

    def _video_frame(self, frame: VideoFrame) -> Optional[av.VideoFrame]:
        fmt = frame.pixel_format.lower()
        if fmt in _NATIVE_FORMATS:
            data = np.ascontiguousarray(frame.data)
        else:
            data = to_bgr(frame)
            fmt = "bgr24"
            if data is None:
                logger.warning("Dropping unreadable video frame (format=%s)", frame.pixel_format)
                return None
        try:
            return av.VideoFrame.from_ndarray(data, format=fmt)
        except (ValueError, TypeError):
            logger.warning("Dropping video frame PyAV cannot wrap (format=%s shape=%s)", fmt, data.shape, exc_info=True)
            return None

    def _push_audio(self, chunk: AudioChunk) -> None:
        if self._resampler is None:
            self._resampler = av.AudioResampler(
                format="fltp",
                layout=_layout(self._audio_cfg.channels),
                rate=self._audio_rate,
            )
            self._fifo = av.AudioFifo()
        data = chunk.data.astype(np.float32, copy=False)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        planar = np.ascontiguousarray(data.T)
        frame = av.AudioFrame.from_ndarray(planar, format="fltp", layout=_layout(chunk.channels))
        frame.sample_rate = chunk.sample_rate
        frame.pts = self._audio_in_samples
        frame.time_base = Fraction(1, chunk.sample_rate)
        self._audio_in_samples += chunk.num_samples
        for out in self._resampler.resample(frame):
            # output timing is assigned from the sample count when re-framed
            out.pts = None
            self._fifo.write(out)

    def _drain_audio(self, final: bool, cap_pts: Optional[int]) -> None:
        if self._fifo is None or self._audio is None or self._audio_start is None:
            return
        frame_size = int(self._audio.codec_context.frame_size or _DEFAULT_AUDIO_FRAME_SIZE)
        while self._fifo.samples >= frame_size or (final and self._fifo.samples > 0):
            out = self._fifo.read(frame_size) if self._fifo.samples >= frame_size else self._fifo.read()
            if out is None:
                break
            pts = self._audio_start + self._audio_out_samples
            self._audio_out_samples += out.samples
            if cap_pts is not None and pts >= cap_pts:
                continue
            out.pts = pts
            out.time_base = self._audio_tb
            for packet in self._audio.encode(out):
                self._container.mux(packet)
            self._audio_frames += 1

    def _finalize(self, future: "Future[Path]", cap: Optional[Time], flush: bool) -> None:
        with self._lock:
            if flush and self._fault is None:
                try:
                    cap_pts = None
                    if cap is not None and self._origin is not None:
                        cap_pts = _ticks(cap - self._origin, self._audio_tb)
                    self._drain_audio(final=True, cap_pts=cap_pts)
                    for packet in self._video.encode(None):
                        self._container.mux(packet)
                    if self._audio is not None:
                        for packet in self._audio.encode(None):
                            self._container.mux(packet)
                except (av.error.FFmpegError, ValueError) as e:
                    self._record_fault(e)
            self._release()
            if self._fault is None and self._video_frames == 0:
                self._fault = WriterFault("No video samples were written")
            ok = self._fault is None
            self._state = WriterState.FINISHED if ok else WriterState.FAILED
            fault = self._fault

        if ok:
            logger.info("Writer finished: %s (%d video frames, %d audio frames)", self.path, self._video_frames, self._audio_frames)
            future.set_result(self.path)
        else:
            logger.error("Writer failed: %s (%s)", self.path, fault)
            err = fault if isinstance(fault, WriterFault) else WriterFault(f"Recording failed: {fault}")
            if err is not fault:
                err.__cause__ = fault
            future.set_exception(err)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._container.close()
        except (av.error.FFmpegError, OSError, ValueError) as e:
            self._record_fault(e)
        self._resampler = None
        self._fifo = None


def open_writer(
    path: str,
    video: VideoConfig,
    audio: AudioConfig,
    container_format: Optional[str] = None,
    slow_motion_factor: Optional[Fraction] = None,
) -> WriterSession:
    """Create the output container and its tracks; the session starts idle."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    slow_motion = slow_motion_factor is not None
    codec = pick_video_codec(video.codecs)

    try:
        container = av.open(str(out), mode="w", format=container_format)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        raise WriterError(f"Failed to open output container: {out}") from e

    try:
        rate = Fraction(video.frame_rate)
        if slow_motion:
            rate = rate / Fraction(slow_motion_factor)
        vstream = container.add_stream(codec, rate=rate)
        vcc = vstream.codec_context
        vcc.width = int(video.width)
        vcc.height = int(video.height)
        vcc.pix_fmt = video.pixel_format
        vcc.bit_rate = int(video.bit_rate)
        vstream.time_base = Fraction(1, int(video.timescale))
        vcc.time_base = vstream.time_base

        astream = None
        if audio.enabled:
            sample_rate = audio.rate_for(slow_motion)
            astream = container.add_stream(audio.codec, rate=sample_rate)
            acc = astream.codec_context
            acc.layout = _layout(audio.channels)
            acc.bit_rate = int(audio.bit_rate)
            astream.time_base = Fraction(1, sample_rate)
    except (av.error.FFmpegError, ValueError, TypeError) as e:
        container.close()
        out.unlink(missing_ok=True)
        raise WriterError(f"Failed to configure tracks for {out}: {e}") from e

    return WriterSession(
        path=out,
        container=container,
        video_stream=vstream,
        audio_stream=astream,
        video_cfg=video,
        audio_cfg=audio,
        slow_motion=slow_motion,
    )
