"""Audio capture and playback."""
