"""Operator endpoints for rebuilding and repairing the search index."""

import asyncio

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from searchsync.config import Settings
from searchsync.services import SyncServices
from searchsync.sync.batch import ReindexResult

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])


class ReindexRequest(BaseModel):
    """Request body for a full rebuild.

    Omitting ``batch_size`` uses the configured default; an explicit
    null indexes the whole class in one call.
    """

    batch_size: int | None = None
    commit_per_batch: bool | None = None


class ClearResponse(BaseModel):
    """Response after removing every entry of a class."""

    record_class: str
    committed: bool


class OrphanReport(BaseModel):
    """Orphaned index entries of a class.

    Attributes:
        record_class: Class that was scanned.
        orphans: Keys indexed without a backing record.
        count: Number of orphans.
        removed: Whether removals were staged for the orphans.
        committed: Whether the removals were committed.
    """

    record_class: str
    orphans: list[int | str] = Field(default_factory=list)
    count: int
    removed: bool = False
    committed: bool = False


class CommitResponse(BaseModel):
    """Response after an explicit commit."""

    operations: int


def _services(request: Request) -> SyncServices:
    return request.app.state.services


@router.post("/reindex/{record_class}", response_model=ReindexResult)
async def reindex(
    record_class: str,
    request: Request,
    body: ReindexRequest | None = None,
) -> ReindexResult:
    """Clear and rebuild the index for a record class.

    Args:
        record_class: Class tag to rebuild.
        request: FastAPI request (provides access to app state).
        body: Optional batching options.

    Returns:
        Per-batch timing and commit count of the rebuild.
    """
    settings: Settings = request.app.state.settings
    body = body or ReindexRequest()
    batch_size = (
        body.batch_size if "batch_size" in body.model_fields_set else settings.default_batch_size
    )
    commit_per_batch = (
        body.commit_per_batch if body.commit_per_batch is not None else settings.commit_per_batch
    )

    engine = _services(request).engine
    return await asyncio.to_thread(engine.reindex_class, record_class, batch_size, commit_per_batch)


@router.delete("/index/{record_class}", response_model=ClearResponse)
async def clear_index(record_class: str, request: Request) -> ClearResponse:
    """Remove every index entry of a record class and commit."""
    engine = _services(request).engine
    await asyncio.to_thread(engine.remove_all_of_class_and_commit, record_class)
    return ClearResponse(record_class=record_class, committed=True)


@router.get("/orphans/{record_class}", response_model=OrphanReport)
async def find_orphans(record_class: str, request: Request) -> OrphanReport:
    """List index entries of a class whose records no longer exist."""
    engine = _services(request).engine
    orphans = await asyncio.to_thread(engine.find_orphans, record_class)
    return OrphanReport(record_class=record_class, orphans=orphans, count=len(orphans))


@router.post("/orphans/{record_class}/repair", response_model=OrphanReport)
async def repair_orphans(
    record_class: str,
    request: Request,
    commit: bool = Query(default=False, description="Commit after staging removals"),
) -> OrphanReport:
    """Remove orphaned index entries of a record class.

    Args:
        record_class: Class tag to repair.
        request: FastAPI request (provides access to app state).
        commit: Commit immediately instead of waiting for the next commit.

    Returns:
        The removed keys and whether they were committed.
    """
    engine = _services(request).engine
    orphans = await asyncio.to_thread(engine.repair_orphans, record_class)
    if commit and orphans:
        await asyncio.to_thread(engine.commit)
    return OrphanReport(
        record_class=record_class,
        orphans=orphans,
        count=len(orphans),
        removed=bool(orphans),
        committed=commit and bool(orphans),
    )


@router.post("/commit", response_model=CommitResponse)
async def commit(request: Request) -> CommitResponse:
    """Commit every staged index change."""
    engine = _services(request).engine
    operations = await asyncio.to_thread(engine.commit)
    logger.info("manual_commit", operations=operations)
    return CommitResponse(operations=operations)
