"""Keyword search endpoint returning matching record keys."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request

from searchsync.search.schemas import SearchResponse

if TYPE_CHECKING:
    from searchsync.services import SyncServices

router = APIRouter(tags=["search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Keyword search within one record class",
    description="Returns primary keys of committed index documents matching the query.",
)
async def search(
    request: Request,
    record_class: str = Query(..., min_length=1, description="Record class tag"),
    q: str = Query(..., min_length=1, max_length=200, description="Search query string"),
) -> SearchResponse:
    """Search one record class without loading records.

    Args:
        request: FastAPI request (provides access to app state).
        record_class: Class tag to search.
        q: Search query string (1-200 characters).

    Returns:
        Matching keys, best match first.
    """
    services: SyncServices = request.app.state.services
    keys = await asyncio.to_thread(services.engine.search_keys, record_class, q)
    return SearchResponse(record_class=record_class, query=q, keys=keys, total=len(keys))
