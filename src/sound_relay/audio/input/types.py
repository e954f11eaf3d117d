"""Audio input data types and format selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ...core.events import DeviceUnavailableError

# Rates probed against the device when building its capability list, best first.
CANDIDATE_SAMPLE_RATES = (48000, 44100, 32000, 22050, 16000, 8000)


@dataclass(frozen=True)
class AudioFormat:
    """Sample format used for the whole run."""
    sample_rate: int = 44100
    channels: int = 2
    bit_depth: int = 16

    @property
    def sample_width(self) -> int:
        return self.bit_depth // 8

    @property
    def frame_bytes(self) -> int:
        return self.sample_width * self.channels

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.frame_bytes

    @property
    def dtype(self) -> str:
        """sounddevice dtype name."""
        return {1: "uint8", 2: "int16", 4: "int32"}[self.sample_width]


@dataclass(frozen=True)
class FrameConfig:
    """How often the device hands captured audio to the consumer."""
    frame_ms: int = 100


@dataclass(frozen=True)
class DeviceCapabilities:
    """What an input device reported when it was probed at startup."""
    name: str
    default_sample_rate: int
    max_channels: int
    supported: Tuple[Tuple[int, int], ...] = field(default_factory=tuple)  # (sample_rate, channels)

    def supports(self, sample_rate: int, channels: int) -> bool:
        return (sample_rate, channels) in self.supported


def choose_format(
    caps: DeviceCapabilities,
    preferred_sample_rate: int = 44100,
    preferred_channels: int = 2,
    bit_depth: int = 16,
) -> AudioFormat:
    """
    Pick the run's format from the device capabilities.

    The preferred combination wins when supported. Otherwise the preferred channel
    count is clamped to what the device has and the best supported rate for it is
    used, falling back to the first supported combination.
    """
    if not caps.supported:
        raise DeviceUnavailableError(f"Input device {caps.name!r} supports no usable format")

    if caps.supports(preferred_sample_rate, preferred_channels):
        return AudioFormat(preferred_sample_rate, preferred_channels, bit_depth)

    channels = min(preferred_channels, caps.max_channels)
    rates = [rate for rate, ch in caps.supported if ch == channels]
    if rates:
        rate = preferred_sample_rate if preferred_sample_rate in rates else max(rates)
        return AudioFormat(rate, channels, bit_depth)

    rate, channels = caps.supported[0]
    return AudioFormat(rate, channels, bit_depth)


def frames_per_block(audio_format: AudioFormat, frame_cfg: FrameConfig) -> int:
    return int(audio_format.sample_rate * frame_cfg.frame_ms / 1000)


def describe(audio_format: Optional[AudioFormat]) -> str:
    if audio_format is None:
        return "<none>"
    return f"{audio_format.sample_rate} Hz, {audio_format.channels} ch, {audio_format.bit_depth}-bit"
