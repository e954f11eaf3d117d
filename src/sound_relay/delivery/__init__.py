"""Delivery of segment artifacts to the ingestion endpoint."""

from .client import (
    ACK_TOKEN,
    MAX_ARTIFACT_BYTES,
    MAX_RETRIES,
    DeliveryAttempt,
    DeliveryClient,
    DeliveryPayload,
    DeliveryResult,
    sha256_digest,
)
from .admin import clear_remote_store

__all__ = [
    "ACK_TOKEN",
    "MAX_ARTIFACT_BYTES",
    "MAX_RETRIES",
    "DeliveryAttempt",
    "DeliveryClient",
    "DeliveryPayload",
    "DeliveryResult",
    "sha256_digest",
    "clear_remote_store",
]
