"""Shared constants and reference implementations for tests."""

import hashlib
import hmac
from unittest.mock import AsyncMock

FIXED_TS = 1700000000
APP_TOKEN = "sbx:test-app-token"
SECRET_KEY = "test-secret-key"
WEBHOOK_SECRET = "my_secret_key"


def expected_request_signature(ts: int, method: str, path: str, body: bytes | None = None) -> str:
    """Independent HMAC-SHA256 reference for request signatures."""
    message = f"{ts}{method}{path}".encode("utf-8") + (body or b"")
    return hmac.new(SECRET_KEY.encode("utf-8"), message, hashlib.sha256).hexdigest()


def webhook_signature(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Independent HMAC-SHA1 reference for webhook digests."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha1).hexdigest()


def mock_response(
    status: int = 200,
    json_data=None,
    text: str = "",
    body: bytes = b"",
) -> AsyncMock:
    """Mock aiohttp response usable as an async context manager."""
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)
    response.read = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response
