"""Upload of finished segment artifacts to the ingestion endpoint."""

from __future__ import annotations

import hashlib
import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from ..core.events import ArtifactTooLargeError, AttemptOutcome, DeliveryError

logger = logging.getLogger("DeliveryClient")

MAX_RETRIES = 3
MAX_ARTIFACT_BYTES = 20 * 1024 * 1024
ACK_TOKEN = "OK"


@dataclass(frozen=True)
class DeliveryPayload:
    """Request body for one artifact. Built once and reused for every attempt."""
    name: str
    content: bytes
    digest: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class DeliveryAttempt:
    segment_index: Optional[int]
    attempt_number: int
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    reason: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class DeliveryResult:
    artifact_path: str
    accepted: bool = False
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    error: Optional[str] = None
    digest: Optional[str] = None


def sha256_digest(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class DeliveryClient:
    """
    Uploads one artifact with a bounded number of sequential attempts.

    An attempt is accepted only when the HTTP response is successful AND the body is
    exactly "OK". The artifact is read and hashed once; retries resend the same
    payload. If building the payload ever produced a bad payload, every retry would
    resend it unchanged. A session created here is closed when deliver() returns;
    a session passed in belongs to the caller.
    """

    def __init__(
        self,
        url: str,
        *,
        segment_index: Optional[int] = None,
        session: Optional[requests.Session] = None,
        max_retries: int = MAX_RETRIES,
        max_bytes: int = MAX_ARTIFACT_BYTES,
        timeout_s: float = 30.0,
        retry_delay_s: float = 0.0,
        mode: str = "digest",
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if mode not in ("digest", "name"):
            raise ValueError(f"Unknown delivery mode: {mode}")
        self._url = url
        self._segment_index = segment_index
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._max_retries = max_retries
        self._max_bytes = max_bytes
        self._timeout_s = timeout_s
        self._retry_delay_s = retry_delay_s
        self._mode = mode

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def build_payload(self, artifact_path: str) -> DeliveryPayload:
        try:
            size = os.path.getsize(artifact_path)
        except OSError as e:
            raise DeliveryError(f"Cannot stat {artifact_path}: {e}") from e
        if size > self._max_bytes:
            raise ArtifactTooLargeError(
                f"{artifact_path} is {size} bytes, limit is {self._max_bytes}"
            )

        try:
            with open(artifact_path, "rb") as f:
                content = f.read(self._max_bytes + 1)
        except OSError as e:
            raise DeliveryError(f"Cannot read {artifact_path}: {e}") from e
        if len(content) > self._max_bytes:
            raise ArtifactTooLargeError(f"{artifact_path} grew past {self._max_bytes} bytes while reading")

        return DeliveryPayload(
            name=os.path.basename(artifact_path),
            content=content,
            digest=sha256_digest(content),
        )

    def deliver(self, artifact_path: str) -> DeliveryResult:
        """Upload artifact_path. Never raises for segment-level failures; see DeliveryResult."""
        try:
            return self._deliver(artifact_path)
        finally:
            if self._owns_session:
                self._session.close()

    def _deliver(self, artifact_path: str) -> DeliveryResult:
        result = DeliveryResult(artifact_path=artifact_path)
        try:
            payload = self.build_payload(artifact_path)
        except DeliveryError as e:
            result.error = str(e)
            logger.error(f"Delivery of {artifact_path} aborted: {e}")
            return result
        result.digest = payload.digest

        for attempt_number in range(1, self._max_retries + 1):
            if attempt_number > 1:
                logger.info(
                    f"Re-transmitting {payload.name}: attempt {attempt_number} of {self._max_retries}"
                )
                if self._retry_delay_s > 0:
                    time.sleep(self._retry_delay_s)

            attempt = DeliveryAttempt(segment_index=self._segment_index, attempt_number=attempt_number)
            result.attempts.append(attempt)
            self._attempt(payload, attempt)

            if attempt.outcome is AttemptOutcome.ACCEPTED:
                result.accepted = True
                logger.info(f"Upload of {payload.name} acknowledged by server (attempt {attempt_number})")
                return result

            logger.warning(f"Upload of {payload.name} rejected on attempt {attempt_number}: {attempt.reason}")

        result.error = f"rejected after {self._max_retries} attempts: {result.attempts[-1].reason}"
        logger.error(f"Giving up on {payload.name}: {result.error}")
        return result

    def _attempt(self, payload: DeliveryPayload, attempt: DeliveryAttempt) -> None:
        try:
            response = self._post(payload)
        except requests.RequestException as e:
            attempt.outcome = AttemptOutcome.REJECTED
            attempt.reason = f"transport error: {e}"
            return

        attempt.status_code = response.status_code
        if not response.ok:
            attempt.outcome = AttemptOutcome.REJECTED
            attempt.reason = f"HTTP {response.status_code}"
        elif response.text != ACK_TOKEN:
            attempt.outcome = AttemptOutcome.REJECTED
            attempt.reason = f"negative acknowledgement: {response.text[:80]!r}"
        else:
            attempt.outcome = AttemptOutcome.ACCEPTED

    def _post(self, payload: DeliveryPayload) -> requests.Response:
        files = {"wavFile": (payload.name, payload.content, "audio/wav")}
        if self._mode == "digest":
            data = {"digest": payload.digest}
        else:
            data = {"name": payload.name}
        return self._session.post(
            self._url,
            params={"action": "add_file"},
            files=files,
            data=data,
            timeout=self._timeout_s,
        )
