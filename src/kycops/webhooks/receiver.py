"""Minimal webhook receiver application."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from kycops.common.logging import get_logger, setup_logging
from kycops.common.metrics import metrics_endpoint
from kycops.common.settings import Settings, get_settings
from kycops.common.tracing import setup_tracing
from kycops.webhooks.middleware import WebhookSignatureMiddleware

logger = get_logger(__name__)

WebhookHandler = Callable[[bytes], Awaitable[None]]


async def _acknowledge(body: bytes) -> None:
    logger.info("Webhook accepted", payload_length=len(body))


def create_app(
    settings: Settings | None = None,
    handler: WebhookHandler | None = None,
) -> Starlette:
    """
    Create the webhook receiver.

    Args:
        settings: Application settings
        handler: Called with the verified raw body of each delivery

    Returns:
        Starlette application
    """
    settings = settings or get_settings()
    on_delivery = handler or _acknowledge

    async def handle_webhook(request: Request) -> Response:
        await on_delivery(request.state.webhook_body)
        return JSONResponse({"status": "accepted"})

    async def handle_health(_request: Request) -> Response:
        return JSONResponse({"status": "ok"})

    routes = [
        Route(settings.webhook_path, handle_webhook, methods=["POST"]),
        Route("/health", handle_health, methods=["GET"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(routes=routes)
    app.add_middleware(WebhookSignatureMiddleware, settings=settings)
    return app


def main() -> None:
    """Entry point for the webhook receiver."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    if settings.tracing_enabled or settings.tracing_otlp_endpoint or settings.tracing_console:
        setup_tracing(
            service_name=settings.tracing_service_name or "kycops-webhooks",
            otlp_endpoint=settings.tracing_otlp_endpoint,
            enable_console=settings.tracing_console,
        )
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.webhook_host,
        port=settings.webhook_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
