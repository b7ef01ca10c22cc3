from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass, replace
from fractions import Fraction
from pathlib import Path
from typing import Callable, List, Optional

from followcam.detection.adapter import SubjectDetector
from followcam.detection.worker import DetectionWorker
from followcam.output.notifier import LogNotifier, Notifier
from followcam.output.sinks import PersistenceSink
from followcam.recording.muxer import WriterSession, open_writer
from followcam.recording.slow_motion import SlowMotionContext
from followcam.utils.config import AudioConfig, OutputConfig, SlowMotionConfig, VideoConfig
from followcam.utils.errors import RecordingError
from followcam.utils.types import DetectionResult, PipelineState, RecordingFinished, Sample, Time


logger = logging.getLogger("followcam.recording.pipeline")

WriterFactory = Callable[..., WriterSession]

_SLOW_MOTION_LOG_EVERY = 100


@dataclass(frozen=True)
class CapturePipelineConfig:
    video: VideoConfig
    audio: AudioConfig
    slow_motion: SlowMotionConfig
    output: OutputConfig
    detection_enabled: bool = True


class CapturePipeline:
    """Real-time recorder: capture samples in, one encoded file + detection log out.

    ``handle_video``/``handle_audio`` are called from the single sample-delivery
    thread. Video frames are remapped for slow motion, written, and offered to
    the detection worker; the worker's gate decides whether a frame is
    inferred or dropped, so recording never waits on detection.
    """

    def __init__(
        self,
        cfg: CapturePipelineConfig,
        sink: PersistenceSink,
        adapter: Optional[SubjectDetector] = None,
        notifier: Optional[Notifier] = None,
        writer_factory: WriterFactory = open_writer,
    ) -> None:
        self._cfg = cfg
        self._sink = sink
        self._notifier: Notifier = notifier or LogNotifier()
        self._writer_factory = writer_factory
        self._lock = threading.RLock()

        self._worker: Optional[DetectionWorker] = None
        if adapter is not None:
            self._worker = DetectionWorker(adapter, self._on_detection)
        self._detection_enabled = bool(cfg.detection_enabled) and self._worker is not None
        self._slow_motion_enabled = bool(cfg.slow_motion.enabled)

        self._state = PipelineState.IDLE
        self._generation = 0
        self._timers: List[threading.Timer] = []
        self._writer: Optional[WriterSession] = None
        self._session_slow_motion = False
        self._slowmo: Optional[SlowMotionContext] = None
        self._log: List[DetectionResult] = []
        self._first_raw_ts: Optional[Time] = None
        self._last_raw_ts: Optional[Time] = None
        self._last_adjusted_ts: Optional[Time] = None
        self._frames = 0
        self._last_error: Optional[BaseException] = None

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state is PipelineState.RECORDING

    @property
    def detection_log(self) -> List[DetectionResult]:
        with self._lock:
            return list(self._log)

    @property
    def slow_motion(self) -> bool:
        with self._lock:
            return self._slow_motion_enabled

    @property
    def detection_enabled(self) -> bool:
        with self._lock:
            return self._detection_enabled

    @property
    def frames_received(self) -> int:
        with self._lock:
            return self._frames

    @property
    def detections_dropped(self) -> int:
        return self._worker.dropped if self._worker is not None else 0

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._last_error

    @property
    def writer(self) -> Optional[WriterSession]:
        with self._lock:
            return self._writer

    def set_slow_motion(self, enabled: bool) -> None:
        with self._lock:
            if self._state is not PipelineState.IDLE:
                raise RecordingError("Slow motion can only be toggled between recordings")
            self._slow_motion_enabled = bool(enabled)
        logger.info("Slow motion %s", "enabled" if enabled else "disabled")

    def set_detection_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._detection_enabled = bool(enabled) and self._worker is not None

    def start_with_delay(self, delay_s: float = 0.0, duration_s: Optional[float] = 10.0) -> bool:
        """Arm a recording that starts after ``delay_s`` and stops ``duration_s`` later.

        The output file is opened immediately so writer errors reach the
        caller. Returns False when a session is already armed or running.
        """
        with self._lock:
            if self._state is not PipelineState.IDLE:
                logger.warning("start_with_delay ignored: pipeline is %s", self._state.value)
                return False

            self._log = []
            if self._worker is not None:
                self._worker.reset()
            self._first_raw_ts = None
            self._last_raw_ts = None
            self._last_adjusted_ts = None
            self._frames = 0
            self._slowmo = None
            self._last_error = None

            slow = self._slow_motion_enabled
            video_cfg = self._cfg.video
            if slow:
                video_cfg = replace(video_cfg, frame_rate=int(self._cfg.slow_motion.capture_frame_rate))
            path = Path(self._cfg.output.scratch_path()) / f"{uuid.uuid4().hex}.{self._cfg.output.container}"
            self._writer = self._writer_factory(
                str(path),
                video_cfg,
                self._cfg.audio,
                slow_motion_factor=Fraction(self._cfg.slow_motion.factor) if slow else None,
            )
            self._session_slow_motion = slow
            self._generation += 1
            gen = self._generation
            self._state = PipelineState.ARMED

            if delay_s <= 0:
                try:
                    self._begin_recording(gen)
                except RecordingError:
                    self._abort_session()
                    raise
            else:
                self._schedule(float(delay_s), self._timed_begin, gen)
            if duration_s is not None:
                self._schedule(max(0.0, float(delay_s)) + float(duration_s), self._timed_stop, gen)
        logger.info("Recording armed: delay=%.2fs duration=%s slow_motion=%s", delay_s, duration_s, slow)
        return True

    def handle_sample(self, sample: Sample) -> bool:
        if sample.kind == "video":
            return self.handle_video(sample)
        return self.handle_audio(sample)

    def handle_video(self, sample: Sample) -> bool:
        with self._lock:
            if self._state is not PipelineState.RECORDING or self._writer is None:
                return False
            if self._last_raw_ts is not None and sample.pts < self._last_raw_ts:
                logger.warning("Dropping out-of-order video sample at %.4fs", float(sample.pts))
                return False
            if self._slowmo is None:
                self._slowmo = SlowMotionContext(
                    enabled=self._session_slow_motion,
                    session_start_time=sample.pts,
                    factor=Fraction(self._cfg.slow_motion.factor),
                )
                self._first_raw_ts = sample.pts
            adjusted = self._slowmo.remap(sample.pts)
            if logger.isEnabledFor(logging.DEBUG):
                self._debug_timing(sample.pts, adjusted)
            frame_index = self._frames
            self._frames += 1
            self._last_raw_ts = sample.pts
            self._last_adjusted_ts = adjusted
            writer = self._writer
            detect = self._detection_enabled

        writer.append_video(Sample(kind="video", payload=sample.payload, pts=adjusted))
        if detect and self._worker is not None:
            self._worker.submit(frame_index, sample.pts, sample.payload)
        return True

    def handle_audio(self, sample: Sample) -> bool:
        with self._lock:
            if self._state is not PipelineState.RECORDING or self._writer is None:
                return False
            if self._session_slow_motion:
                return False
            writer = self._writer
        return writer.append_audio(sample)

    def stop(self) -> "Optional[Future[Path]]":
        """Stop the current session.

        From ``armed`` the pending start is cancelled and nothing is written.
        From ``recording`` the writer is finished and the returned future
        resolves with the stored file once the sink has it.
        """
        with self._lock:
            if self._state is PipelineState.ARMED:
                self._cancel_timers()
                self._abort_session()
                logger.info("Armed recording cancelled")
                return None
            if self._state is not PipelineState.RECORDING or self._writer is None:
                return None
            self._cancel_timers()
            self._state = PipelineState.STOPPING
            writer = self._writer
            last = self._last_adjusted_ts

        writer.mark_video_finished()
        writer.mark_audio_finished()
        result: "Future[Path]" = Future()
        result.set_running_or_notify_cancel()
        writer.finish(last).add_done_callback(lambda f: self._on_writer_finished(f, writer, result))
        return result

    def close(self) -> None:
        with self._lock:
            self._cancel_timers()
        if self._worker is not None:
            self._worker.close()

    def wait_detection_idle(self, timeout: Optional[float] = None) -> bool:
        if self._worker is None:
            return True
        return self._worker.wait_idle(timeout)

    def _schedule(self, delay_s: float, fn: Callable[[int], None], gen: int) -> None:
        t = threading.Timer(delay_s, fn, args=(gen,))
        t.daemon = True
        self._timers.append(t)
        t.start()

    def _cancel_timers(self) -> None:
        for t in self._timers:
            t.cancel()
        self._timers = []

    def _timed_begin(self, gen: int) -> None:
        with self._lock:
            try:
                self._begin_recording(gen)
            except RecordingError as e:
                logger.error("Recording could not start: %s", e)
                self._last_error = e
                self._cancel_timers()
                self._abort_session()

    def _timed_stop(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation:
                return
        self.stop()

    def _begin_recording(self, gen: int) -> None:
        if gen != self._generation or self._state is not PipelineState.ARMED or self._writer is None:
            return
        self._writer.start()
        self._state = PipelineState.RECORDING
        logger.info("Recording started: %s", self._writer.path)

    def _abort_session(self) -> None:
        writer = self._writer
        self._writer = None
        self._state = PipelineState.IDLE
        if writer is None:
            return
        # never started: closes the container and resolves as failed
        writer.finish().add_done_callback(lambda _f: Path(writer.path).unlink(missing_ok=True))

    def _on_detection(self, result: DetectionResult) -> None:
        with self._lock:
            if self._first_raw_ts is None or result.timestamp < self._first_raw_ts:
                return
            if self._log and result.timestamp <= self._log[-1].timestamp:
                return
            self._log.append(result)

    def _on_writer_finished(self, f: "Future[Path]", writer: WriterSession, result: "Future[Path]") -> None:
        try:
            path = f.result()
        except Exception as e:
            self._finish_session(writer, error=e)
            result.set_exception(e)
            return

        with self._lock:
            log = list(self._log)
            frames = writer.video_frames_written
            duration = self._duration(writer)
        try:
            stored = self._sink.store(path, log)
        except Exception as e:
            logger.exception("Failed to store recording %s", path)
            self._finish_session(writer, error=e)
            result.set_exception(e)
            return

        event = RecordingFinished(
            path=str(stored),
            duration_s=float(duration),
            video_frames=frames,
            detections=len(log),
            slow_motion=writer.slow_motion,
        )
        self._finish_session(writer, error=None)
        try:
            self._notifier.notify_finished(event)
        except Exception:
            logger.exception("Notifier failed for %s", stored)
        result.set_result(stored)

    def _finish_session(self, writer: WriterSession, error: Optional[BaseException]) -> None:
        with self._lock:
            if error is not None:
                logger.error("Recording failed: %s", error)
                self._last_error = error
            if self._writer is writer:
                self._writer = None
                self._state = PipelineState.IDLE

    def _duration(self, writer: WriterSession) -> Fraction:
        if writer.origin is None or writer.last_video_timestamp is None:
            return Fraction(0)
        if writer.slow_motion:
            frame_period = Fraction(self._cfg.slow_motion.factor) / int(self._cfg.slow_motion.capture_frame_rate)
        else:
            frame_period = Fraction(1, int(self._cfg.video.frame_rate))
        return writer.last_video_timestamp - writer.origin + frame_period

    def _debug_timing(self, raw: Time, adjusted: Time) -> None:
        if self._last_raw_ts is not None and raw > self._last_raw_ts:
            logger.debug("Instantaneous FPS: %.2f", 1.0 / float(raw - self._last_raw_ts))
        if self._session_slow_motion and self._frames % _SLOW_MOTION_LOG_EVERY == 0:
            logger.debug("Slow-motion remap: raw=%.4fs adjusted=%.4fs", float(raw), float(adjusted))
