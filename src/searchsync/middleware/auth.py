"""API key authentication for record, search and admin endpoints."""

import secrets
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

API_KEY_HEADER = "X-API-Key"
PUBLIC_PREFIXES: tuple[str, ...] = ("/api/v1/health/",)


def _unauthorized(request: Request, reason: str) -> JSONResponse:
    logger.warning("auth_rejected", path=request.url.path, method=request.method, reason=reason)
    return JSONResponse(
        status_code=401,
        content={"error": "unauthorized", "detail": reason},
    )


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Require the service key on every path except health checks."""

    def __init__(self, app: Callable[..., Awaitable[Response]], api_key: str) -> None:
        """Initialize middleware with API key.

        Args:
            app: ASGI application.
            api_key: Expected API key value.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Reject requests without the expected key.

        Returns:
            HTTP response, or 401 if authentication fails.
        """
        if request.url.path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        provided = request.headers.get(API_KEY_HEADER)
        if provided is None:
            return _unauthorized(request, f"Missing {API_KEY_HEADER} header")
        if not secrets.compare_digest(provided.encode(), self._api_key.encode()):
            return _unauthorized(request, "Invalid API key")

        return await call_next(request)
