"""Shared error types and codes."""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse


class ErrorCode:
    MISSING_SIGNATURE = "missing_signature"
    INVALID_ENCODING = "invalid_encoding"
    INVALID_SIGNATURE = "invalid_signature"
    WEBHOOK_SECRET_MISSING = "webhook_secret_missing"


class KycClientError(Exception):
    """Base error for the KYC client."""


class PayloadEncodingError(KycClientError):
    """A request payload could not be serialized, so nothing was signed."""


class TransportError(KycClientError):
    """The HTTP request could not be sent or its response could not be read."""


class ApiError(KycClientError):
    """The remote service answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API error (status: {status_code}): {message}")
        self.status_code = status_code
        self.message = message


class ResponseDecodingError(KycClientError):
    """A success response body was not the expected JSON."""


class MimeTypeError(KycClientError):
    """An upload was given a malformed MIME type."""


class WebhookVerificationError(KycClientError):
    """A webhook delivery failed signature verification."""

    def __init__(self, reason: Any) -> None:
        super().__init__(f"Webhook rejected: {getattr(reason, 'value', reason)}")
        self.reason = reason


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(payload, status_code=status_code)
