"""Capture session record and its forward-only lifecycle."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from .events import InvalidTransitionError, SessionState

if TYPE_CHECKING:
    from ..audio.input.types import AudioFormat
    from ..delivery.client import DeliveryResult

logger = logging.getLogger("CaptureSession")

_TRANSITIONS = {
    SessionState.IDLE: {SessionState.RECORDING, SessionState.FAILED},
    SessionState.RECORDING: {SessionState.FINALIZING, SessionState.FAILED},
    SessionState.FINALIZING: {SessionState.DELIVERING, SessionState.FAILED},
    SessionState.DELIVERING: {SessionState.COMPLETED, SessionState.FAILED},
    SessionState.COMPLETED: set(),
    SessionState.FAILED: set(),
}


def artifact_name_for(index: int, ext: str = "wav") -> str:
    return f"sample{index}.{ext}"


@dataclass
class CaptureSession:
    """
    Lifecycle record for one segment.

    State only moves forward (Idle -> Recording -> Finalizing -> Delivering ->
    Completed), with Failed reachable from any non-terminal state.
    """

    index: int
    artifact_path: str
    audio_format: "AudioFormat"
    state: SessionState = SessionState.IDLE
    error: Optional[str] = None
    delivery: Optional["DeliveryResult"] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def create(cls, index: int, audio_format: "AudioFormat", directory: str = ".", ext: str = "wav") -> "CaptureSession":
        if index < 0:
            raise ValueError(f"Session index must be >= 0, got {index}")
        path = os.path.join(directory, artifact_name_for(index, ext))
        return cls(index=index, artifact_path=path, audio_format=audio_format)

    def advance(self, new_state: SessionState) -> None:
        with self._lock:
            if new_state not in _TRANSITIONS[self.state]:
                raise InvalidTransitionError(
                    f"Segment {self.index}: cannot move from {self.state.name} to {new_state.name}"
                )
            old_state = self.state
            self.state = new_state
        logger.info("Segment %d: %s -> %s", self.index, old_state.name, new_state.name)

    def fail(self, reason: str) -> None:
        """Move to FAILED, keeping the first reason. No-op once terminal."""
        with self._lock:
            if self.state.is_terminal:
                return
            old_state = self.state
            self.state = SessionState.FAILED
            self.error = reason
        logger.error("Segment %d: %s -> FAILED (%s)", self.index, old_state.name, reason)
