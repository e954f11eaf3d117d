"""Runs one capture segment from device acquisition to upload hand-off."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, List, Optional, TYPE_CHECKING

from ...core.events import (
    DeviceUnavailableError,
    SegmentCompleted,
    SegmentWriterError,
    SessionState,
)
from ...core.jobs import BackgroundJobs
from ...core.session import CaptureSession
from .mic import AudioSource, DeviceHandle
from .writer import SegmentWriter

if TYPE_CHECKING:
    from ...delivery.client import DeliveryClient, DeliveryResult

logger = logging.getLogger("SegmentScheduler")

CompletionHandler = Callable[[SegmentCompleted], None]
DeliveryFactory = Callable[[CaptureSession], "DeliveryClient"]

DEFAULT_SEGMENT_DURATION_S = 10.0
DEFAULT_SETTLE_DELAY_S = 0.05


class SegmentScheduler:
    """
    Owns one CaptureSession for its whole life.

    start() acquires the shared AudioSource, routes its frames into a SegmentWriter and
    arms a one-shot timer. When the timer fires (on its own thread) the device is
    released, the artifact finalized, completion listeners are called synchronously
    and the upload is handed to BackgroundJobs without waiting for it.
    """

    def __init__(
        self,
        session: CaptureSession,
        source: AudioSource,
        *,
        delivery_factory: DeliveryFactory,
        jobs: BackgroundJobs,
        segment_duration_s: float = DEFAULT_SEGMENT_DURATION_S,
        settle_delay_s: float = DEFAULT_SETTLE_DELAY_S,
    ):
        self.session = session
        self._source = source
        self._delivery_factory = delivery_factory
        self._jobs = jobs
        self._segment_duration_s = segment_duration_s
        self._settle_delay_s = settle_delay_s

        self._listeners: List[CompletionHandler] = []
        self._writer: Optional[SegmentWriter] = None
        self._handle: Optional[DeviceHandle] = None
        self._timer: Optional[threading.Timer] = None
        self._delivery: Optional[Future] = None
        self._late_frames = 0

    @property
    def index(self) -> int:
        return self.session.index

    @property
    def delivery(self) -> Optional[Future]:
        return self._delivery

    def add_completion_listener(self, handler: CompletionHandler) -> None:
        self._listeners.append(handler)

    def remove_completion_listener(self, handler: CompletionHandler) -> bool:
        try:
            self._listeners.remove(handler)
        except ValueError:
            return False
        return True

    def start(self) -> None:
        """
        Begin capturing.

        Raises SegmentWriterError if the artifact cannot be created (the device is not
        touched) and DeviceUnavailableError if the device cannot be acquired. Either
        way the session ends FAILED.
        """
        session = self.session
        try:
            self._writer = SegmentWriter(session.artifact_path, session.audio_format)
        except OSError as e:
            session.fail(f"cannot create artifact: {e}")
            raise SegmentWriterError(f"{session.artifact_path}: {e}") from e
        # handler goes in before open() so the first block is not lost
        self._source.on_frame(self._on_frame)
        session.advance(SessionState.RECORDING)
        try:
            self._handle = self._source.open(session.audio_format)
        except DeviceUnavailableError as e:
            self._source.off_frame(self._on_frame)
            self._writer.discard()
            session.fail(str(e))
            raise

        self._timer = threading.Timer(self._segment_duration_s, self._on_expiry)
        self._timer.name = f"Segment{session.index}Timer"
        self._timer.daemon = True
        self._timer.start()
        logger.info(f"Started recording sample {session.index} ({self._segment_duration_s:.1f}s)")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait until the timer has fired and its expiry handling has returned."""
        if self._timer is not None:
            self._timer.join(timeout)

    def _on_frame(self, data: bytes) -> None:
        try:
            self._writer.append(data)
        except SegmentWriterError:
            # a block already in flight when the handler was removed
            self._late_frames += 1
            logger.debug(f"Segment {self.index}: dropping block received after finalize")

    def _on_expiry(self) -> None:
        session = self.session
        self._source.off_frame(self._on_frame)
        self._source.close(self._handle)
        self._handle = None
        session.advance(SessionState.FINALIZING)

        try:
            self._writer.finalize()
        except (OSError, SegmentWriterError) as e:
            session.fail(f"finalize failed: {e}")

        # let the driver fully release the device before the next segment opens it
        time.sleep(self._settle_delay_s)

        self._emit(
            SegmentCompleted(
                index=session.index,
                artifact_path=session.artifact_path,
                state=session.state,
                error=session.error,
            )
        )

        if session.state is SessionState.FINALIZING:
            session.advance(SessionState.DELIVERING)
            self._delivery = self._jobs.submit(f"deliver-{session.index}", self._deliver)

    def _emit(self, event: SegmentCompleted) -> None:
        for handler in list(self._listeners):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Completion handler failed for segment {event.index}: {e}", exc_info=True)

    def _deliver(self) -> "DeliveryResult":
        session = self.session
        client = self._delivery_factory(session)
        result = client.deliver(session.artifact_path)
        session.delivery = result
        if result.accepted:
            session.advance(SessionState.COMPLETED)
        else:
            session.fail(result.error or "delivery failed")
        return result
