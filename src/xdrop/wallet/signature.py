"""HMAC-SHA256 signatures for custodial wallet webhooks."""

from __future__ import annotations

import hashlib
import hmac


def compute_signature(secret: str, body: bytes) -> str:
    """Lowercase hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Constant-time, exact comparison against the provider's header value."""
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode(), signature.encode())
