"""WAV artifact writer for one capture segment."""

from __future__ import annotations

import logging
import os
import threading
import wave
from typing import BinaryIO, Optional

from ...core.events import SegmentWriterError
from .types import AudioFormat

logger = logging.getLogger("SegmentWriter")


class SegmentWriter:
    """
    Accumulates raw frames for one segment into a WAV file.

    Bytes are written in arrival order as they come in. finalize() patches the RIFF
    header with the real data length, flushes to disk and closes the file; it may be
    called exactly once.
    """

    def __init__(self, path: str, audio_format: AudioFormat):
        self._path = path
        self._format = audio_format
        self._lock = threading.Lock()
        self._bytes_written = 0
        self._finalized = False

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self._file: Optional[BinaryIO] = open(path, "wb")
        self._wav = wave.open(self._file, "wb")
        self._wav.setnchannels(audio_format.channels)
        self._wav.setsampwidth(audio_format.sample_width)
        self._wav.setframerate(audio_format.sample_rate)

    @property
    def path(self) -> str:
        return self._path

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def frames_written(self) -> int:
        return self._bytes_written // self._format.frame_bytes

    @property
    def duration_s(self) -> float:
        return self.frames_written / self._format.sample_rate

    @property
    def finalized(self) -> bool:
        return self._finalized

    def append(self, data: bytes) -> None:
        if not data:
            return
        with self._lock:
            if self._finalized:
                raise SegmentWriterError(f"{self._path}: append after finalize")
            self._wav.writeframesraw(data)
            self._bytes_written += len(data)

    def finalize(self) -> None:
        """Write the final header, flush and close. Raises SegmentWriterError on a second call."""
        with self._lock:
            if self._finalized:
                raise SegmentWriterError(f"{self._path}: finalize called twice")
            self._finalized = True
            try:
                # wave patches nframes/datalength in the header on close
                self._wav.close()
                self._file.flush()
                os.fsync(self._file.fileno())
            finally:
                self._file.close()
                self._file = None

        logger.info(
            "Finalized %s: %d bytes, %.2fs of audio",
            self._path,
            self._bytes_written,
            self.duration_s,
        )

    def discard(self) -> None:
        """Close and delete an artifact that never received a segment."""
        with self._lock:
            if self._finalized:
                return
            self._finalized = True
            try:
                self._wav.close()
            finally:
                self._file.close()
                self._file = None
        try:
            os.remove(self._path)
        except FileNotFoundError:
            pass
        logger.info("Discarded %s", self._path)
