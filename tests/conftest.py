import os
import threading
from types import SimpleNamespace

import pytest

from sound_relay.audio.input.types import AudioFormat
from sound_relay.core.events import DeviceUnavailableError


class FakeAudioSource:
    """AudioSource stand-in that records the acquire/release order."""

    def __init__(self, chunk: bytes = b"\x01\x00\x02\x00" * 8, fail_on_open=(), on_acquire=None):
        self.chunk = chunk
        self.fail_on_open = set(fail_on_open)
        self.on_acquire = on_acquire
        self.trace = []
        self.handler = None
        self.opens = 0
        self.overlapped = False
        self._held = False
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._held

    def on_frame(self, handler):
        self.handler = handler

    def off_frame(self, handler):
        if self.handler is not None and self.handler == handler:
            self.handler = None
            return True
        return False

    def open(self, audio_format):
        attempt = self.opens
        self.opens += 1
        if attempt in self.fail_on_open:
            raise DeviceUnavailableError("device busy")
        with self._lock:
            if self._held:
                self.overlapped = True
                raise DeviceUnavailableError("already held")
            self._held = True
        self.trace.append(("acquire", attempt))
        if self.on_acquire is not None:
            self.on_acquire(attempt)
        if self.handler is not None and self.chunk:
            self.handler(self.chunk)
        return SimpleNamespace(index=attempt, closed=False)

    def close(self, handle):
        with self._lock:
            self._held = False
        handle.closed = True
        self.trace.append(("release", handle.index))


@pytest.fixture
def audio_format():
    return AudioFormat(sample_rate=16000, channels=1, bit_depth=16)


@pytest.fixture
def fake_source():
    return FakeAudioSource()


@pytest.fixture
def in_tmp_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def setup_test_env():
    """Isolate tests from the caller's environment variables"""
    original_env = os.environ.copy()

    for key in list(os.environ):
        if key in {
            "INGEST_URL", "SEGMENT_DURATION_S", "SETTLE_DELAY_S", "MAX_RETRIES", "RETRY_DELAY_S",
            "MAX_ARTIFACT_BYTES", "REQUEST_TIMEOUT_S", "DELIVERY_MODE", "INPUT_DEVICE", "OUTPUT_DEVICE",
            "PREFERRED_SAMPLE_RATE", "PREFERRED_CHANNELS", "ARTIFACT_DIR", "ARTIFACT_EXT",
            "CLEAR_ON_START", "MAX_DELIVERY_WORKERS", "DB_PATH", "LOG_LEVEL",
        }:
            del os.environ[key]

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def make_source():
    """Factory for FakeAudioSource with custom chunk or failing opens."""
    return FakeAudioSource
