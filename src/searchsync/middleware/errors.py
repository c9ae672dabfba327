"""Mapping of sync error kinds to HTTP responses."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from searchsync.errors import (
    AdapterUnavailable,
    DocumentError,
    InvalidBatchSize,
    SyncError,
    UnknownRecordClass,
)

logger = structlog.get_logger()

_STATUS_BY_ERROR: dict[type[SyncError], int] = {
    InvalidBatchSize: 422,
    DocumentError: 422,
    UnknownRecordClass: status.HTTP_404_NOT_FOUND,
    AdapterUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def sync_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a SyncError as ``{"error": kind, "detail": message}``.

    Args:
        request: Request that raised the error.
        exc: The raised SyncError.

    Returns:
        JSON response with a status derived from the error kind.
    """
    assert isinstance(exc, SyncError)
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.warning if code < 500 else logger.error
    log("sync_error", path=request.url.path, kind=exc.kind, error=str(exc))
    return JSONResponse(
        status_code=code,
        content={"error": exc.kind, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the SyncError handler on an application."""
    app.add_exception_handler(SyncError, sync_error_handler)
