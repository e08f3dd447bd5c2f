"""Permissive CORS for the public PO portal endpoints.

The review and upload pages are served from a different origin than this API
and call it without credentials, so every response carries open CORS headers
whether or not the request sent an Origin header. Any OPTIONS request is a
preflight: it is answered with 200 and an empty body before routing.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class OpenCORSMiddleware(BaseHTTPMiddleware):
    """Set permissive CORS headers unconditionally and short-circuit preflights.

    Args:
        app: The wrapped ASGI application.
        allow_origin: Value for Access-Control-Allow-Origin (default ``*``).
    """

    ALLOW_METHODS = "GET, POST, OPTIONS"
    ALLOW_HEADERS = "Content-Type"

    def __init__(self, app, allow_origin: str = "*") -> None:
        super().__init__(app)
        self._allow_origin = allow_origin

    def _apply(self, response: Response) -> Response:
        response.headers["Access-Control-Allow-Origin"] = self._allow_origin
        response.headers["Access-Control-Allow-Methods"] = self.ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = self.ALLOW_HEADERS
        return response

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return self._apply(Response(status_code=200))
        response = await call_next(request)
        return self._apply(response)
