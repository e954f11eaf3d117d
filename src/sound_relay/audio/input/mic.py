"""Microphone audio capture."""

from __future__ import annotations

import queue
import threading
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Union

import numpy as np
import sounddevice as sd

from ...core.events import DeviceUnavailableError
from .types import (
    CANDIDATE_SAMPLE_RATES,
    AudioFormat,
    DeviceCapabilities,
    FrameConfig,
    frames_per_block,
)

logger = logging.getLogger(__name__)

FrameHandler = Callable[[bytes], None]
Device = Optional[Union[int, str]]

# 100 ms blocks: roughly 50 s of audio before blocks are dropped
FRAME_QUEUE_SIZE = 500


@dataclass
class DeviceHandle:
    """An open input stream. Only one exists per AudioSource at a time."""
    stream: sd.InputStream
    audio_format: AudioFormat
    frames: "queue.Queue[Optional[Tuple[FrameHandler, bytes]]]"
    dispatcher: threading.Thread
    opened_at: float = field(default_factory=time.time)
    closed: bool = False


class AudioSource:
    """
    Shared microphone used by every capture segment.

    The device is exclusive: open() fails while another handle is held, and close()
    must run before the next open(). Captured blocks are passed as raw interleaved
    bytes to the handler that was registered when the block arrived.

    Important: keep the stream callback lightweight. It only queues the block; a
    dispatcher thread calls the handler. close() drains the queue before it returns,
    so every captured block has been handed over once the device is released.
    """

    def __init__(self, device: Device = None, frame_cfg: FrameConfig = FrameConfig()):
        self._device = device
        self._frame_cfg = frame_cfg
        self._lock = threading.Lock()
        self._handle: Optional[DeviceHandle] = None
        self._frame_handler: Optional[FrameHandler] = None
        self._frames: Optional[queue.Queue] = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def capabilities(self) -> DeviceCapabilities:
        """Query the device once; probes which (rate, channels) pairs it accepts."""
        try:
            info = sd.query_devices(self._device, kind="input")
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailableError(f"Cannot query input device {self._device!r}: {e}") from e

        max_channels = int(info["max_input_channels"])
        default_rate = int(info["default_samplerate"])
        rates = sorted(set(CANDIDATE_SAMPLE_RATES) | {default_rate}, reverse=True)

        supported = []
        for channels in range(max_channels, 0, -1):
            for rate in rates:
                try:
                    sd.check_input_settings(device=self._device, channels=channels, samplerate=rate, dtype="int16")
                except (sd.PortAudioError, ValueError):
                    continue
                supported.append((rate, channels))

        caps = DeviceCapabilities(
            name=str(info["name"]),
            default_sample_rate=default_rate,
            max_channels=max_channels,
            supported=tuple(supported),
        )
        logger.info(f"Input device {caps.name!r}: {len(caps.supported)} supported formats, up to {max_channels} channels")
        return caps

    def on_frame(self, handler: FrameHandler) -> None:
        """Register the handler that receives captured bytes. Replaces any previous one."""
        self._frame_handler = handler

    def off_frame(self, handler: FrameHandler) -> bool:
        """Deregister handler if it is the current one. Bound methods compare by ==, not identity."""
        if self._frame_handler is not None and self._frame_handler == handler:
            self._frame_handler = None
            return True
        logger.warning("off_frame called with a handler that is not registered")
        return False

    def open(self, audio_format: AudioFormat) -> DeviceHandle:
        """Acquire the device and start capturing."""
        if not self._lock.acquire(blocking=False):
            raise DeviceUnavailableError("Input device is already held by another segment")

        dtype_map = {
            "uint8": np.uint8,
            "int16": np.int16,
            "int32": np.int32,
        }
        frames: queue.Queue = queue.Queue(maxsize=FRAME_QUEUE_SIZE)
        dispatcher = threading.Thread(
            target=self._dispatch,
            args=(frames,),
            name="AudioSourceDispatcher",
            daemon=True,
        )
        dispatcher.start()
        self._frames = frames
        try:
            stream = sd.InputStream(
                callback=self._audio_callback,
                samplerate=audio_format.sample_rate,
                channels=audio_format.channels,
                blocksize=frames_per_block(audio_format, self._frame_cfg),
                dtype=dtype_map[audio_format.dtype],
                device=self._device,
            )
            stream.start()
        except Exception as e:
            self._stop_dispatcher(frames, dispatcher)
            self._lock.release()
            raise DeviceUnavailableError(f"Cannot open input device {self._device!r}: {e}") from e

        self._handle = DeviceHandle(
            stream=stream,
            audio_format=audio_format,
            frames=frames,
            dispatcher=dispatcher,
        )
        logger.info("Input device acquired")
        return self._handle

    def close(self, handle: DeviceHandle) -> None:
        """
        Stop the stream, hand over queued blocks and release the device.

        The device is released even if stopping fails.
        """
        if handle.closed:
            return
        try:
            handle.stream.stop()
            handle.stream.close()
        except Exception as e:
            logger.warning(f"Error closing input stream: {e}")
        finally:
            self._stop_dispatcher(handle.frames, handle.dispatcher)
            handle.closed = True
            if self._handle is handle:
                self._handle = None
                self._lock.release()
            logger.info("Input device released")

    def _stop_dispatcher(self, frames: queue.Queue, dispatcher: threading.Thread) -> None:
        if self._frames is frames:
            self._frames = None
        # blocks already queued are delivered before the sentinel
        frames.put(None)
        dispatcher.join()

    def _dispatch(self, frames: queue.Queue) -> None:
        while True:
            item = frames.get()
            if item is None:
                return
            handler, data = item
            try:
                handler(data)
            except Exception as e:
                logger.error(f"Frame handler failed: {e}", exc_info=True)

    def _audio_callback(self, indata, frames, time_info, status):
        """Callback function for sounddevice audio stream."""
        if status:
            logger.warning(f"Audio callback status: {status}")

        queued = self._frames
        handler = self._frame_handler
        if queued is None or handler is None:
            return
        # indata shape is (frames, channels); tobytes() gives interleaved samples
        try:
            queued.put_nowait((handler, indata.tobytes()))
        except queue.Full:
            logger.warning("Frame queue is full, dropping audio block")
