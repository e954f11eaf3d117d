"""Chains capture segments for a whole run."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from .audio.input.mic import AudioSource
from .audio.input.scheduler import (
    DEFAULT_SEGMENT_DURATION_S,
    DEFAULT_SETTLE_DELAY_S,
    DeliveryFactory,
    SegmentScheduler,
)
from .audio.input.types import AudioFormat, describe
from .core.events import DeviceUnavailableError, SegmentCompleted, SegmentWriterError
from .core.jobs import BackgroundJobs
from .core.runtime import RunContext
from .core.session import CaptureSession
from .core.shutdown import StopSignal

logger = logging.getLogger("Orchestrator")


class Player(Protocol):
    def play(self, path: str) -> bool: ...

    def stop(self) -> bool: ...


class Orchestrator:
    """
    Runs `total_segments` back-to-back capture segments.

    Segment N+1 is created and started from segment N's completion signal, which
    fires only after N has released the device. At most one segment captures at a
    time; uploads of earlier segments keep running in the background.
    """

    def __init__(
        self,
        source: AudioSource,
        player: Player,
        jobs: BackgroundJobs,
        delivery_factory: DeliveryFactory,
        audio_format: AudioFormat,
        *,
        playback_path: Optional[str] = None,
        artifact_dir: str = ".",
        artifact_ext: str = "wav",
        segment_duration_s: float = DEFAULT_SEGMENT_DURATION_S,
        settle_delay_s: float = DEFAULT_SETTLE_DELAY_S,
        stop_signal: Optional[StopSignal] = None,
    ):
        self._source = source
        self._player = player
        self._jobs = jobs
        self._delivery_factory = delivery_factory
        self._audio_format = audio_format
        self._playback_path = playback_path
        self._artifact_dir = artifact_dir
        self._artifact_ext = artifact_ext
        self._segment_duration_s = segment_duration_s
        self._settle_delay_s = settle_delay_s
        self._stop_signal = stop_signal

        self._run: Optional[RunContext] = None
        self._current: Optional[SegmentScheduler] = None
        self._lock = threading.Lock()

    @property
    def run_context(self) -> Optional[RunContext]:
        return self._run

    def run(self, total_segments: int) -> RunContext:
        """Start the run and return immediately; use wait() to block until it ends."""
        if total_segments < 1:
            raise ValueError(f"total_segments must be >= 1, got {total_segments}")
        if self._run is not None:
            raise RuntimeError("Orchestrator.run() may only be called once")

        self._run = RunContext(total_segments=total_segments, audio_format=self._audio_format)
        logger.info(f"Starting run: {total_segments} segment(s) at {describe(self._audio_format)}")

        if self._playback_path is not None and not self._player.play(self._playback_path):
            logger.warning("Reference playback did not start; capturing anyway")

        try:
            self._start_from(0)
        except DeviceUnavailableError as e:
            self._finish(error=e)
            raise
        return self._run

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the last segment has finished capturing and handed off its upload.

        Uploads themselves may still be running; wait on BackgroundJobs for those.
        """
        if self._run is None:
            raise RuntimeError("run() has not been called")
        if not self._run.wait(timeout):
            return False
        with self._lock:
            last = self._current
        if last is not None:
            # returns once the last upload has been handed to the job pool
            last.join()
        return True

    def _start_segment(self, index: int) -> None:
        session = CaptureSession.create(
            index,
            self._audio_format,
            directory=self._artifact_dir,
            ext=self._artifact_ext,
        )
        scheduler = SegmentScheduler(
            session,
            self._source,
            delivery_factory=self._delivery_factory,
            jobs=self._jobs,
            segment_duration_s=self._segment_duration_s,
            settle_delay_s=self._settle_delay_s,
        )
        scheduler.add_completion_listener(self._on_segment_complete)
        self._run.record(session)
        with self._lock:
            previous, self._current = self._current, scheduler
        try:
            scheduler.start()
        except (DeviceUnavailableError, SegmentWriterError):
            # wait() must still join the segment whose completion handler got us here
            with self._lock:
                self._current = previous
            raise

    def _start_from(self, index: int) -> None:
        """
        Start the first segment, from `index` onward, whose artifact can be created.

        Segments whose artifact cannot be created are left FAILED and skipped. If none
        is left the run finishes. DeviceUnavailableError propagates.
        """
        run = self._run
        while index < run.total_segments:
            try:
                self._start_segment(index)
                return
            except SegmentWriterError as e:
                logger.error(f"Skipping segment {index}: {e}")
                index = run.advance_index()
        logger.info(f"All {run.total_segments} segment(s) processed")
        self._finish()

    def _on_segment_complete(self, event: SegmentCompleted) -> None:
        run = self._run
        with self._lock:
            finished = self._current
        if event.ok:
            logger.info(f"Segment {event.index} captured to {event.artifact_path}")
        else:
            logger.error(f"Segment {event.index} finished with errors: {event.error}")

        next_index = run.advance_index()
        try:
            if next_index < run.total_segments and self._stop_signal is not None and self._stop_signal.is_set():
                logger.warning(f"Stop requested; not starting segment {next_index}")
                self._finish()
            else:
                try:
                    self._start_from(next_index)
                except DeviceUnavailableError as e:
                    logger.error(f"Cannot start the next segment: {e}")
                    self._finish(error=e)
        finally:
            if finished is not None:
                finished.remove_completion_listener(self._on_segment_complete)

    def _finish(self, error: Optional[BaseException] = None) -> None:
        if not self._player.stop():
            logger.warning("Reference playback did not stop cleanly")
        self._run.finish(error)
