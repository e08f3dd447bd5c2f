"""FastAPI application factory.

Creates the app with open CORS, logging middleware, metrics middleware,
Sentry, the error handlers, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.requests import Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.sketch_review.config import get_settings
from src.sketch_review.core.errors import (
    SketchReviewError,
    handle_http_error,
    handle_sketch_review_error,
    handle_validation_error,
)
from src.sketch_review.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.sketch_review.api.middleware import LoggingMiddleware, OpenCORSMiddleware
from src.sketch_review.api.middleware.logging import configure_structlog
from src.sketch_review.api.v1.router import router as v1_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: logging and Sentry on startup."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if not settings.HUBSPOT_TOKEN:
        log.warning("startup.hubspot_token_missing")
    if not settings.PO_QUOTE_SECRET:
        log.warning("startup.po_quote_secret_missing", hint="all PO links will be rejected")

    log.info(
        "startup.complete",
        environment=settings.ENVIRONMENT.value,
        notify_mode=settings.PO_NOTIFY_MODE.value,
        recipient_strategy=settings.PO_RECIPIENT_STRATEGY.value,
    )
    yield
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Sketch Review API",
        version="0.1.0",
        description="Sketch review and PO quote handlers in front of the HubSpot CRM",
        lifespan=lifespan,
    )

    app.add_exception_handler(SketchReviewError, handle_sketch_review_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware (inner -- so headers land on error responses too)
    app.add_middleware(OpenCORSMiddleware, allow_origin=settings.CORS_ALLOWED_ORIGINS)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
