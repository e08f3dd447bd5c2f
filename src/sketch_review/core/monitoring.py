"""Prometheus metrics, Sentry integration, and CRM call tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- init_sentry(): Initialize Sentry with deal-aware before_send callback
- track_crm_call(): Context manager for outbound CRM call metrics
- get_metrics_response(): Response body for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── CRM Metrics ──────────────────────────────────────────────────────────────

crm_requests_total = Counter(
    "crm_requests_total",
    "Total outbound CRM API requests",
    ["operation", "status"],
)

crm_request_duration_seconds = Histogram(
    "crm_request_duration_seconds",
    "Outbound CRM API request duration in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Webhook Metrics ──────────────────────────────────────────────────────────

webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Outbound webhook deliveries (alerts and PO notifications)",
    ["sink", "status"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records Prometheus request count and latency for every HTTP request.

    The endpoint label is the matched route template; requests that match
    no route share the label ``unmatched``. CORS preflights and /metrics
    itself are not recorded.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
            duration
        )
        return response


# ── CRM Metrics Helper ──────────────────────────────────────────────────────


@asynccontextmanager
async def track_crm_call(operation: str) -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that tracks outbound CRM call metrics.

    Usage:
        async with track_crm_call("get_deal") as tracker:
            response = await client.get(...)
            tracker["status"] = str(response.status_code)

    The status label defaults to "error" when the body raises and to
    "ok" when it completes without setting one.
    """
    tracker: dict[str, Any] = {"status": None}
    start_time = time.perf_counter()

    try:
        yield tracker
    except Exception:
        tracker["status"] = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        crm_requests_total.labels(
            operation=operation,
            status=tracker["status"] or "ok",
        ).inc()
        crm_request_duration_seconds.labels(operation=operation).observe(duration)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Tag events with the deal id from the request query string.

        Body-carried ids are tagged by bind_deal_context().
        """
        query = (event.get("request") or {}).get("query_string") or ""
        for part in str(query).split("&"):
            key, _, value = part.partition("=")
            if key == "dealId" and value:
                event.setdefault("tags", {})["deal_id"] = value
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
