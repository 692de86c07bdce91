"""Webhook signature and freshness checks."""
import hashlib
import hmac
from datetime import datetime, timedelta
from typing import Optional

from linear_reminder.logging_conf import logger

SIGNATURE_HEADER = "Linear-Signature"
REPLAY_WINDOW = timedelta(seconds=60)


def compute_signature(raw_body: bytes, secret: bytes) -> str:
    """Hex-encoded HMAC-SHA256 of the body keyed by the shared secret."""
    return hmac.new(secret, raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, signature_header: Optional[str], secret: bytes) -> bool:
    """
    Check that the body was signed with the shared secret.

    Never raises: a missing header, empty secret or malformed input is
    simply a failed verification.
    """
    if not signature_header or not secret:
        return False
    try:
        expected = compute_signature(raw_body, secret)
        received = signature_header.strip().lower().encode("ascii")
        return hmac.compare_digest(received, expected.encode("ascii"))
    except (TypeError, ValueError, UnicodeError) as e:
        logger.debug(f"Signature check failed on malformed input: {e}")
        return False


def is_fresh(webhook_timestamp: datetime, now: datetime, max_age: timedelta = REPLAY_WINDOW) -> bool:
    """False when the event was emitted more than max_age before now."""
    return now - webhook_timestamp <= max_age
