"""Periodic commit of staged index changes."""

import asyncio
from collections.abc import Callable

import structlog

from searchsync.errors import SyncError
from searchsync.search.index import SearchIndex

logger = structlog.get_logger()


def _never_paused() -> bool:
    return False


async def run_auto_commit(
    search_index: SearchIndex,
    interval: float,
    paused: Callable[[], bool] = _never_paused,
) -> None:
    """Commit the index every ``interval`` seconds when changes are staged.

    Bounds how long hook-driven writes, which never commit themselves,
    stay invisible to queries. While ``paused()`` is true (a rebuild is
    running) nothing is committed, so a rebuild without per-batch
    commits swaps the class in with its own final commit.

    Args:
        search_index: Active search index.
        interval: Seconds between commit checks.
        paused: Returns True while commits must wait.
    """
    logger.info("auto_commit_started", interval=interval)
    try:
        while True:
            await asyncio.sleep(interval)
            if search_index.pending_count == 0:
                continue
            if paused():
                logger.debug("auto_commit_deferred", pending=search_index.pending_count)
                continue
            try:
                applied = await asyncio.to_thread(search_index.commit)
            except SyncError as e:
                logger.warning("auto_commit_failed", error=str(e), kind=e.kind)
                continue
            logger.debug("auto_commit_applied", operations=applied)
    except asyncio.CancelledError:
        logger.info("auto_commit_stopped")
        raise
