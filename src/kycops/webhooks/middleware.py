"""Starlette middleware that rejects unsigned or forged webhook deliveries."""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from kycops.common.errors import ErrorCode, error_response
from kycops.common.logging import get_logger
from kycops.common.settings import Settings
from kycops.webhooks.verify import VerificationReason, verify_webhook_signature

logger = get_logger(__name__)

_REJECTION_CODES = {
    VerificationReason.INVALID_ENCODING: ErrorCode.INVALID_ENCODING,
    VerificationReason.INVALID_SIGNATURE: ErrorCode.INVALID_SIGNATURE,
}


class WebhookSignatureMiddleware(BaseHTTPMiddleware):
    """
    Verify webhook signatures before any handler parses the body.

    Only requests to the protected paths are checked. The verified raw body
    is stored on ``request.state.webhook_body``.
    """

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        protected_paths: tuple[str, ...] | None = None,
    ) -> None:
        super().__init__(app)
        self._secret = settings.webhook_secret
        self._header = settings.webhook_signature_header
        self._protected_paths = set(protected_paths or (settings.webhook_path,))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path not in self._protected_paths:
            return await call_next(request)

        delivery_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(delivery_id=delivery_id)
        try:
            if not self._secret:
                logger.error("Webhook secret not configured")
                return error_response(
                    ErrorCode.WEBHOOK_SECRET_MISSING,
                    "Webhook secret not configured",
                    500,
                )

            signature = request.headers.get(self._header)
            if not signature:
                return error_response(
                    ErrorCode.MISSING_SIGNATURE,
                    f"Missing {self._header} header",
                    401,
                )

            body = await request.body()
            result = verify_webhook_signature(self._secret, body, signature)
            if not result.accepted:
                return error_response(
                    _REJECTION_CODES.get(result.reason, ErrorCode.INVALID_SIGNATURE),
                    "Webhook signature rejected",
                    401,
                )

            request.state.webhook_body = body
            return await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("delivery_id")
