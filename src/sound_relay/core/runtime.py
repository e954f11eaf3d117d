"""Run context holding the orchestrator's bookkeeping."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from .session import CaptureSession
from .shutdown import GracefulShutdown

if TYPE_CHECKING:
    from ..audio.input.types import AudioFormat


@dataclass
class RunContext:
    """
    State of one run, owned by the Orchestrator.

    Lives here (not as module globals) and is passed to whatever needs to inspect the run.
    """

    total_segments: int
    audio_format: "AudioFormat"
    current_index: int = 0
    sessions: List[CaptureSession] = field(default_factory=list)
    finished: GracefulShutdown = field(default_factory=GracefulShutdown)
    error: Optional[BaseException] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, session: CaptureSession) -> None:
        with self._lock:
            self.sessions.append(session)

    def advance_index(self) -> int:
        with self._lock:
            self.current_index += 1
            return self.current_index

    @property
    def is_finished(self) -> bool:
        return self.finished.is_set()

    def finish(self, error: Optional[BaseException] = None) -> None:
        with self._lock:
            if error is not None and self.error is None:
                self.error = error
        self.finished.stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.finished.wait(timeout)
