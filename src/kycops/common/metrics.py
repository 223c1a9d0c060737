"""Prometheus metrics for kycops observability."""

import os

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.requests import Request
from starlette.responses import Response

# === Counters ===

API_REQUESTS_TOTAL = Counter(
    "kycops_api_requests_total",
    "Total API requests sent",
    ["method", "operation", "status"],  # status: HTTP code or "transport_error"
)

SIGNED_REQUESTS_TOTAL = Counter(
    "kycops_signed_requests_total",
    "Total requests signed",
    ["body_kind"],  # body_kind: json, empty, ndjson
)

WEBHOOK_VERIFICATIONS_TOTAL = Counter(
    "kycops_webhook_verifications_total",
    "Webhook signature verification outcomes",
    ["outcome"],  # outcome: accepted, invalid_encoding, invalid_signature
)

# === Histograms ===

API_REQUEST_LATENCY = Histogram(
    "kycops_api_request_latency_seconds",
    "API request latency in seconds",
    ["method", "operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)


# === Helper Functions ===


def record_api_request(
    method: str,
    operation: str,
    status: int | str,
    latency: float,
) -> None:
    """Record an outbound API request."""
    API_REQUESTS_TOTAL.labels(
        method=method,
        operation=operation,
        status=str(status),
    ).inc()
    API_REQUEST_LATENCY.labels(
        method=method,
        operation=operation,
    ).observe(latency)


def record_signed_request(body_kind: str) -> None:
    """Record a signed request."""
    SIGNED_REQUESTS_TOTAL.labels(body_kind=body_kind).inc()


def record_webhook_verification(outcome: str) -> None:
    """Record a webhook verification outcome."""
    WEBHOOK_VERIFICATIONS_TOTAL.labels(outcome=outcome).inc()


# === HTTP Endpoint ===


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
