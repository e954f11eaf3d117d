"""Tests for reference playback."""

import wave

import numpy as np
import pytest
import sounddevice as sd
from unittest.mock import patch

from sound_relay.audio.output.playback import ReferencePlayer, load_wav

MODULE = "sound_relay.audio.output.playback"


@pytest.fixture
def reference_wav(tmp_path):
    path = tmp_path / "reference.wav"
    samples = np.arange(-50, 50, dtype=np.int16).repeat(2)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(22050)
        wav.writeframes(samples.tobytes())
    return str(path)


def test_load_wav_shapes_by_channel(reference_wav):
    data, sample_rate = load_wav(reference_wav)
    assert sample_rate == 22050
    assert data.shape == (100, 2)
    assert data.dtype == np.int16
    assert data[0, 0] == data[0, 1] == -50


def test_play_loops_file(reference_wav):
    player = ReferencePlayer(device=5)
    with patch(f"{MODULE}.sd.play") as mock_play:
        assert player.play(reference_wav)

    args, kwargs = mock_play.call_args
    assert args[0].shape == (100, 2)
    assert kwargs["samplerate"] == 22050
    assert kwargs["loop"] is True
    assert kwargs["device"] == 5
    assert player.is_playing


def test_play_missing_file(tmp_path):
    player = ReferencePlayer()
    with patch(f"{MODULE}.sd.play") as mock_play:
        assert not player.play(str(tmp_path / "nope.wav"))
    mock_play.assert_not_called()
    assert not player.is_playing


def test_play_invalid_file(tmp_path):
    path = tmp_path / "not_audio.wav"
    path.write_text("definitely not RIFF")
    with patch(f"{MODULE}.sd.play") as mock_play:
        assert not ReferencePlayer().play(str(path))
    mock_play.assert_not_called()


def test_play_device_error(reference_wav):
    with patch(f"{MODULE}.sd.play", side_effect=sd.PortAudioError("Invalid device")):
        assert not ReferencePlayer().play(reference_wav)


def test_stop(reference_wav):
    player = ReferencePlayer()
    with patch(f"{MODULE}.sd.play"), patch(f"{MODULE}.sd.stop") as mock_stop:
        player.play(reference_wav)
        assert player.stop()
    mock_stop.assert_called_once()
    assert not player.is_playing


def test_stop_device_error():
    with patch(f"{MODULE}.sd.stop", side_effect=sd.PortAudioError("Stream error")):
        assert not ReferencePlayer().stop()
