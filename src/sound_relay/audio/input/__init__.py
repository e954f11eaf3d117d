"""Audio input subsystem - captures fixed-length segments into WAV artifacts."""

from __future__ import annotations

from .types import AudioFormat, DeviceCapabilities, FrameConfig, choose_format
from .mic import AudioSource, DeviceHandle
from .writer import SegmentWriter
from .scheduler import SegmentScheduler

__all__ = [
    "AudioFormat",
    "DeviceCapabilities",
    "FrameConfig",
    "choose_format",
    "AudioSource",
    "DeviceHandle",
    "SegmentWriter",
    "SegmentScheduler",
]
