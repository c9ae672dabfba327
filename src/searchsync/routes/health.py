"""Health check endpoints for liveness and readiness checks."""
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from searchsync.errors import SyncError
from searchsync.services import SyncServices

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for the liveness check."""

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
        pending: Staged index operations, for the index check.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None
    pending: int | None = None


class ReadinessResponse(BaseModel):
    """Response model for the readiness check."""

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]


def _check_store(services: SyncServices) -> ReadinessCheck:
    """Verify the record store answers queries."""
    try:
        services.store.ping()
        return ReadinessCheck(name="store", status="ok")
    except SyncError as e:
        return ReadinessCheck(name="store", status="failed", message=str(e))


def _check_index(services: SyncServices) -> ReadinessCheck:
    """Verify the search index answers queries and report staged writes."""
    try:
        services.search_index.document_count()
        return ReadinessCheck(
            name="index",
            status="ok",
            pending=services.search_index.pending_count,
        )
    except SyncError as e:
        return ReadinessCheck(name="index", status="failed", message=str(e))


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness endpoint; succeeds whenever the process runs."""
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness endpoint.

    Returns 200 if record store and search index both answer, 503
    otherwise.

    Returns:
        Readiness status with individual check results.
    """
    services: SyncServices = request.app.state.services
    checks = [_check_store(services), _check_index(services)]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
