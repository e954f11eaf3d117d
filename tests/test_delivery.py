"""Tests for DeliveryClient upload and retry policy."""

import hashlib
from unittest.mock import MagicMock, patch

import pytest
import requests

from sound_relay.core.events import AttemptOutcome
from sound_relay.delivery.client import (
    MAX_ARTIFACT_BYTES,
    MAX_RETRIES,
    DeliveryClient,
    sha256_digest,
)

MODULE = "sound_relay.delivery.client"
URL = "http://ingest.test/api.php"


def _response(status_code=200, text="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.text = text
    return response


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "sample0.wav"
    path.write_bytes(b"RIFF" + b"\x07" * 60)
    return str(path)


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


def test_accepted_on_first_ok(artifact, http):
    http.post.return_value = _response(200, "OK")
    client = DeliveryClient(URL, session=http, segment_index=0)

    result = client.deliver(artifact)

    assert result.accepted
    assert result.error is None
    assert len(result.attempts) == 1
    assert result.attempts[0].outcome is AttemptOutcome.ACCEPTED
    assert result.attempts[0].attempt_number == 1
    assert result.attempts[0].segment_index == 0
    http.post.assert_called_once()


def test_request_carries_content_and_digest(artifact, http):
    http.post.return_value = _response()
    DeliveryClient(URL, session=http).deliver(artifact)

    content = open(artifact, "rb").read()
    args, kwargs = http.post.call_args
    assert args[0] == URL
    assert kwargs["params"] == {"action": "add_file"}
    name, body, mime = kwargs["files"]["wavFile"]
    assert name == "sample0.wav"
    assert body == content
    assert mime == "audio/wav"
    assert kwargs["data"] == {"digest": hashlib.sha256(content).hexdigest()}


def test_name_mode_sends_file_name(artifact, http):
    http.post.return_value = _response()
    DeliveryClient(URL, session=http, mode="name").deliver(artifact)
    assert http.post.call_args[1]["data"] == {"name": "sample0.wav"}


def test_fail_fail_ok_takes_three_attempts(artifact, http):
    http.post.side_effect = [_response(200, "FAIL"), _response(200, "FAIL"), _response(200, "OK")]
    client = DeliveryClient(URL, session=http)

    result = client.deliver(artifact)

    assert result.accepted
    assert [a.attempt_number for a in result.attempts] == [1, 2, 3]
    assert [a.outcome for a in result.attempts] == [
        AttemptOutcome.REJECTED,
        AttemptOutcome.REJECTED,
        AttemptOutcome.ACCEPTED,
    ]
    assert "FAIL" in result.attempts[0].reason
    assert http.post.call_count == 3


def test_gives_up_after_max_retries(artifact, http):
    http.post.return_value = _response(200, "FAIL")
    client = DeliveryClient(URL, session=http)

    result = client.deliver(artifact)

    assert not result.accepted
    assert len(result.attempts) == MAX_RETRIES == 3
    assert http.post.call_count == MAX_RETRIES
    assert "rejected after 3 attempts" in result.error


def test_http_error_with_ok_body_is_rejected(artifact, http):
    http.post.side_effect = [_response(500, "OK"), _response(200, "OK")]
    result = DeliveryClient(URL, session=http).deliver(artifact)

    assert result.accepted
    assert result.attempts[0].outcome is AttemptOutcome.REJECTED
    assert result.attempts[0].reason == "HTTP 500"
    assert result.attempts[0].status_code == 500


def test_body_must_match_exactly(artifact, http):
    http.post.side_effect = [_response(200, "OK\n"), _response(200, "ok"), _response(200, " OK")]
    result = DeliveryClient(URL, session=http).deliver(artifact)
    assert not result.accepted
    assert len(result.attempts) == 3


def test_transport_error_is_retried(artifact, http):
    http.post.side_effect = [requests.ConnectionError("connection refused"), _response()]
    result = DeliveryClient(URL, session=http).deliver(artifact)

    assert result.accepted
    assert result.attempts[0].reason.startswith("transport error")
    assert len(result.attempts) == 2


def test_payload_built_once_and_reused(artifact, http):
    http.post.return_value = _response(200, "FAIL")
    with patch(f"{MODULE}.sha256_digest", wraps=sha256_digest) as digest_spy:
        DeliveryClient(URL, session=http).deliver(artifact)

    digest_spy.assert_called_once()
    bodies = [c[1]["files"]["wavFile"][1] for c in http.post.call_args_list]
    assert len(bodies) == 3
    assert bodies[0] is bodies[1] is bodies[2]


def test_oversized_artifact_makes_no_attempts(tmp_path, http):
    path = tmp_path / "sample9.wav"
    path.write_bytes(b"\x00" * 11)
    result = DeliveryClient(URL, session=http, max_bytes=10).deliver(str(path))

    assert not result.accepted
    assert result.attempts == []
    assert "limit is 10" in result.error
    http.post.assert_not_called()


def test_default_size_limit_is_20mb():
    assert MAX_ARTIFACT_BYTES == 20 * 1024 * 1024


def test_missing_artifact_makes_no_attempts(tmp_path, http):
    result = DeliveryClient(URL, session=http).deliver(str(tmp_path / "missing.wav"))
    assert not result.accepted
    assert result.attempts == []
    http.post.assert_not_called()


def test_retry_delay_between_attempts(artifact, http):
    http.post.return_value = _response(200, "FAIL")
    with patch(f"{MODULE}.time.sleep") as mock_sleep:
        DeliveryClient(URL, session=http, retry_delay_s=0.5).deliver(artifact)
    assert mock_sleep.call_count == 2
    mock_sleep.assert_called_with(0.5)


def test_invalid_arguments():
    with pytest.raises(ValueError):
        DeliveryClient(URL, max_retries=0)
    with pytest.raises(ValueError):
        DeliveryClient(URL, mode="carrier-pigeon")


def test_owned_session_closed_after_delivery(artifact):
    with patch(f"{MODULE}.requests.Session") as mock_session_cls:
        http = mock_session_cls.return_value
        http.post.side_effect = requests.ConnectionError("refused")
        result = DeliveryClient(URL, segment_index=4).deliver(artifact)

    assert not result.accepted
    assert http.post.call_count == MAX_RETRIES
    http.close.assert_called_once()


def test_owned_session_closed_when_payload_fails(tmp_path):
    with patch(f"{MODULE}.requests.Session") as mock_session_cls:
        DeliveryClient(URL).deliver(str(tmp_path / "missing.wav"))
    mock_session_cls.return_value.close.assert_called_once()


def test_caller_session_left_open(artifact, http):
    http.post.return_value = _response()
    DeliveryClient(URL, session=http).deliver(artifact)
    http.close.assert_not_called()
