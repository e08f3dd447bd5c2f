"""Structured logging setup and per-request log context.

configure_structlog() picks the renderer per environment (JSON in
production, console otherwise) and routes stdlib logging at LOG_LEVEL.

LoggingMiddleware binds ``request_id`` and, when the query string carries
one, ``deal_id`` into structlog's context variables, so every line logged
while the request is handled (resolver, pipeline, CRM client) carries them.
It then emits one ``request_completed`` or ``request_error`` line with
timing and echoes the request id as ``X-Request-ID``.

POST endpoints carry the deal id in the JSON body, which the middleware
does not read. They call bind_deal_context() once the body is parsed.
"""

from __future__ import annotations

import logging
import time
import uuid

import sentry_sdk
import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.sketch_review.config import Environment, get_settings

logger = structlog.get_logger(__name__)


def configure_structlog() -> None:
    """Configure structlog processors based on environment."""
    settings = get_settings()

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.ENVIRONMENT == Environment.production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_deal_context(deal_id: str) -> None:
    """Attach ``deal_id`` to later log lines and to the Sentry scope."""
    structlog.contextvars.bind_contextvars(deal_id=deal_id)
    sentry_sdk.set_tag("deal_id", deal_id)


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds request context for downstream loggers and logs each request.

    Request bodies are never logged: the upload endpoint carries base64
    file payloads. CORS preflights are logged at debug level only.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}
        if deal_id := request.query_params.get("dealId"):
            context["deal_id"] = deal_id

        start = time.monotonic()
        with structlog.contextvars.bound_contextvars(**context):
            try:
                response = await call_next(request)
            except Exception:
                logger.error("request_error", status_code=500, duration_ms=_elapsed_ms(start))
                raise

            response.headers["X-Request-ID"] = request_id

            if request.method == "OPTIONS":
                log_method = logger.debug
            elif response.status_code >= 500:
                log_method = logger.error
            elif response.status_code >= 400:
                log_method = logger.warning
            else:
                log_method = logger.info
            log_method(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )

        return response
