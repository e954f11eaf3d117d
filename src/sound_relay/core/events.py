from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional
import time


class SessionState(Enum):
    IDLE = auto()
    RECORDING = auto()
    FINALIZING = auto()
    DELIVERING = auto()
    COMPLETED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED)


class AttemptOutcome(Enum):
    PENDING = auto()
    ACCEPTED = auto()
    REJECTED = auto()


@dataclass(frozen=True)
class SegmentCompleted:
    """Emitted once a segment has stopped capturing and its artifact is finalized (or failed to)."""
    index: int
    artifact_path: str
    state: SessionState
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.error is None


class SoundRelayError(Exception):
    """Base class for pipeline errors."""


class DeviceUnavailableError(SoundRelayError):
    """The input device could not be acquired. Ends the run."""


class SegmentWriterError(SoundRelayError):
    """A segment artifact was used after it was finalized."""


class InvalidTransitionError(SoundRelayError):
    """A capture session was moved backwards or across a skipped state."""


class DeliveryError(SoundRelayError):
    """An artifact could not be turned into an upload payload."""


class ArtifactTooLargeError(DeliveryError):
    pass
