"""Looping playback of the reference audio file."""

from __future__ import annotations

import logging
import wave
from typing import Optional, Union

import numpy as np
import sounddevice as sd

logger = logging.getLogger("Playback")

_DTYPES = {1: np.uint8, 2: np.int16, 4: np.int32}


def load_wav(path: str) -> tuple[np.ndarray, int]:
    """Read a PCM WAV file into a (frames, channels) array and its sample rate."""
    with wave.open(path, "rb") as wav:
        sample_width = wav.getsampwidth()
        if sample_width not in _DTYPES:
            raise wave.Error(f"Unsupported sample width: {sample_width * 8}-bit")
        channels = wav.getnchannels()
        sample_rate = wav.getframerate()
        raw = wav.readframes(wav.getnframes())

    frames = np.frombuffer(raw, dtype=_DTYPES[sample_width])
    return frames.reshape(-1, channels), sample_rate


class ReferencePlayer:
    """
    Plays one file on a loop for the duration of a run.

    play() and stop() report success as a bool and log failures instead of raising,
    since the capture run does not depend on playback.
    """

    def __init__(self, device: Optional[Union[int, str]] = None):
        self._device = device
        self._playing: Optional[str] = None

    @property
    def is_playing(self) -> bool:
        return self._playing is not None

    def play(self, path: str) -> bool:
        logger.info(f"Loading playback file {path}")
        try:
            data, sample_rate = load_wav(path)
        except FileNotFoundError:
            logger.error(f"Playback file not found: {path}")
            return False
        except (wave.Error, EOFError, ValueError) as e:
            logger.error(f"Playback file is not a valid WAV file: {path} ({e})")
            return False

        try:
            sd.play(data, samplerate=sample_rate, loop=True, device=self._device)
        except sd.PortAudioError as e:
            logger.error(f"Could not start playback: {e}")
            return False

        self._playing = path
        logger.info(f"Playback started ({sample_rate} Hz, {data.shape[1]} ch, looping)")
        return True

    def stop(self) -> bool:
        try:
            sd.stop()
        except sd.PortAudioError as e:
            logger.error(f"Unexpected error while stopping playback: {e}")
            return False
        finally:
            self._playing = None
        logger.info("Playback stopped")
        return True
