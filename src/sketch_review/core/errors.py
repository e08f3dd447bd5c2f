"""Error taxonomy for the PO portal handlers.

Every handler failure is raised as a SketchReviewError subclass and rendered
by a single exception handler as ``{"error": message, "details": ...}``.

- BadRequestError / AccessDeniedError: client errors, never reported to the
  alert webhook.
- DealNotFoundError: the primary deal is absent after every lookup strategy.
- ConfigurationError: a required secret or token is missing; raised before
  any external call.
- UpstreamError: a CRM call on the critical path failed.

Framework errors (unknown route, wrong method, unparsable body) are rendered
in the same shape.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class SketchReviewError(Exception):
    """Base error carrying an HTTP status and a user-facing message.

    Attributes:
        status_code: HTTP status returned to the caller.
        message: User-facing error text (the ``error`` field).
        details: Optional underlying detail (the ``details`` field).
        extra: Additional top-level fields merged into the response body.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        status_code: int | None = None,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, **self.extra}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequestError(SketchReviewError):
    status_code = status.HTTP_400_BAD_REQUEST


class AccessDeniedError(SketchReviewError):
    status_code = status.HTTP_403_FORBIDDEN


class DealNotFoundError(SketchReviewError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, deal_id: str | None = None, **extra: Any) -> None:
        if deal_id is not None:
            extra["dealId"] = deal_id
        super().__init__("Deal not found", **extra)


class ConfigurationError(SketchReviewError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(SketchReviewError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_sketch_review_error(request: Request, exc: SketchReviewError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework errors (unknown route, wrong method) in the same shape."""
    message = str(exc.detail)
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        allowed = exc.headers.get("Allow", "") if exc.headers else ""
        if allowed and "GET" not in allowed:
            message = "POST only"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=exc.headers,
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client errors in the same shape."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )
