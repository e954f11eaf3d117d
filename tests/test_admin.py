"""Tests for the remote store clear request."""

from unittest.mock import MagicMock

import requests

from sound_relay.delivery.admin import clear_remote_store


def test_returns_confirmation_text():
    http = MagicMock()
    http.get.return_value = MagicMock(ok=True, status_code=200, text="Wavefiles table successfully wiped.")

    assert clear_remote_store("http://ingest.test/api.php", timeout_s=5, session=http) == \
        "Wavefiles table successfully wiped."
    http.get.assert_called_once_with(
        "http://ingest.test/api.php", params={"action": "clear_all_files"}, timeout=5
    )


def test_transport_failure_returns_none():
    http = MagicMock()
    http.get.side_effect = requests.ConnectionError("no route to host")
    assert clear_remote_store("http://ingest.test/api.php", session=http) is None


def test_error_status_returns_none():
    http = MagicMock()
    http.get.return_value = MagicMock(ok=False, status_code=500, text="Failed to perform erasure")
    assert clear_remote_store("http://ingest.test/api.php", session=http) is None
