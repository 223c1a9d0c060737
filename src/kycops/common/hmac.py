"""HMAC primitives for request signing and webhook verification."""

from __future__ import annotations

import hashlib
import hmac

SecretKey = str | bytes


def _key_bytes(secret: SecretKey) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def build_message(timestamp: int | str, method: str, path: str, body: bytes | None) -> bytes:
    """
    Build the signed message for an API request.

    Timestamp, method, path and body are concatenated with no separator.
    The remote service recomputes exactly this, so nothing may be
    normalized here: the path keeps its case and its query string.
    """
    parts = [
        str(timestamp).encode("utf-8"),
        method.encode("utf-8"),
        path.encode("utf-8"),
    ]
    if body is not None:
        parts.append(body)
    return b"".join(parts)


def sign(secret: SecretKey, message: bytes) -> str:
    """Create a hex-encoded HMAC-SHA256 signature."""
    return hmac.new(_key_bytes(secret), message, hashlib.sha256).hexdigest()


def webhook_digest(secret: SecretKey, payload: bytes) -> bytes:
    """Raw HMAC-SHA1 digest of a webhook payload."""
    return hmac.new(_key_bytes(secret), payload, hashlib.sha1).digest()


def constant_time_equals(expected: bytes, provided: bytes) -> bool:
    """Compare digests in constant time."""
    return hmac.compare_digest(expected, provided)
