"""Batched full rebuild of one record class."""

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from searchsync.errors import AdapterUnavailable, InvalidBatchSize, PartialBatchFailure
from searchsync.sync.protocols import ORDER_BY_PRIMARY_KEY, IndexClient, RecordSource, Syncable

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 500


class BatchCursor(BaseModel):
    """Transient position of a rebuild; never persisted.

    Attributes:
        offset: Offset of the next page to fetch.
        limit: Page size.
        record_count: Records counted before the scan started.
        batch_number: Number of batches fetched so far.
    """

    offset: int = 0
    limit: int
    record_count: int
    batch_number: int = 0

    @property
    def exhausted(self) -> bool:
        """Whether every counted record has been covered."""
        return self.offset >= self.record_count

    def advance(self) -> None:
        """Move to the next page."""
        self.offset += self.limit


class BatchStats(BaseModel):
    """Timing and throughput of one indexed batch.

    Attributes:
        batch_number: 1-based batch number.
        offset: Offset of the first record in the batch.
        size: Records in the batch.
        started_at: Wall-clock start of the indexing call (UTC).
        elapsed_seconds: Duration of the indexing call.
        records_per_second: Throughput, None when too fast to measure.
        records_indexed: Records indexed so far, this batch included.
    """

    batch_number: int
    offset: int
    size: int
    started_at: datetime
    elapsed_seconds: float
    records_per_second: float | None
    records_indexed: int


class ReindexResult(BaseModel):
    """Outcome of a full rebuild of one record class."""

    record_class: str
    batch_size: int | None
    commit_per_batch: bool
    record_count: int = 0
    records_indexed: int = 0
    commits: int = 0
    elapsed_seconds: float = 0.0
    batches: list[BatchStats] = Field(default_factory=list)


def validate_batch_size(batch_size: Any) -> None:
    """Reject batch sizes that are not None or a positive int.

    Raises:
        InvalidBatchSize: For zero, negative, bool or non-integer values.
    """
    if batch_size is None:
        return
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise InvalidBatchSize(batch_size)


class BatchCoordinator:
    """Streams a record class into the index in bounded pages.

    Pages are ordered by primary key so they never overlap. Records
    inserted or deleted during a long scan may still be missed or seen
    twice; a later rebuild converges.
    """

    def __init__(self, index: IndexClient, source: RecordSource) -> None:
        self._index = index
        self._source = source

    def reindex(
        self,
        record_class: str,
        batch_size: int | None = DEFAULT_BATCH_SIZE,
        commit_per_batch: bool = True,
    ) -> ReindexResult:
        """Clear and rebuild the index for one record class.

        Args:
            record_class: Class to rebuild.
            batch_size: Records per page, or None to index the whole
                class in a single call without page commits.
            commit_per_batch: Commit after every page.

        Returns:
            Batch statistics and commit count of the rebuild.

        Raises:
            InvalidBatchSize: Before anything is removed.
            AdapterUnavailable: If the index or store cannot be reached.
            PartialBatchFailure: If a page fails to load or index.
        """
        validate_batch_size(batch_size)

        result = ReindexResult(
            record_class=record_class,
            batch_size=batch_size,
            commit_per_batch=commit_per_batch,
        )
        started = time.perf_counter()
        logger.info(
            "reindex_started",
            record_class=record_class,
            batch_size=batch_size,
            commit_per_batch=commit_per_batch,
        )

        self._index.remove_all(record_class)

        if batch_size is None:
            records = self._fetch(result, 1, 0, lambda: self._source.fetch_all(record_class))
            result.record_count = len(records)
            if records:
                self._index_batch(result, records, batch_number=1, offset=0)
        else:
            cursor = BatchCursor(limit=batch_size, record_count=self._source.count(record_class))
            result.record_count = cursor.record_count
            while not cursor.exhausted:
                records = self._fetch(
                    result,
                    cursor.batch_number + 1,
                    cursor.offset,
                    lambda: self._source.fetch_page(
                        record_class, cursor.offset, cursor.limit, ORDER_BY_PRIMARY_KEY
                    ),
                )
                if not records:
                    logger.warning(
                        "reindex_page_empty",
                        record_class=record_class,
                        offset=cursor.offset,
                        record_count=cursor.record_count,
                    )
                    break
                cursor.batch_number += 1
                self._index_batch(result, records, cursor.batch_number, cursor.offset)
                cursor.advance()
                if commit_per_batch:
                    self._commit(result)

        self._commit(result)

        result.elapsed_seconds = round(time.perf_counter() - started, 6)
        logger.info(
            "reindex_completed",
            record_class=record_class,
            record_count=result.record_count,
            records_indexed=result.records_indexed,
            batches=len(result.batches),
            commits=result.commits,
            elapsed_seconds=result.elapsed_seconds,
        )
        return result

    def _fetch(
        self,
        result: ReindexResult,
        batch_number: int,
        offset: int,
        fetch: Callable[[], Sequence[Syncable]],
    ) -> Sequence[Syncable]:
        """Load one page; records the store cannot load abort the rebuild."""
        try:
            return fetch()
        except AdapterUnavailable:
            raise
        except Exception as e:
            logger.error(
                "reindex_fetch_failed",
                record_class=result.record_class,
                batch_number=batch_number,
                offset=offset,
                error=str(e),
            )
            raise PartialBatchFailure(result.record_class, batch_number, offset) from e

    def _index_batch(
        self,
        result: ReindexResult,
        records: Sequence[Syncable],
        batch_number: int,
        offset: int,
    ) -> None:
        """Index one page as a single call and record its timing."""
        started_at = datetime.now(UTC)
        start = time.perf_counter()
        logger.debug(
            "reindex_batch_started",
            record_class=result.record_class,
            batch_number=batch_number,
            offset=offset,
        )

        try:
            self._index.index_many(records)
        except AdapterUnavailable:
            raise
        except Exception as e:
            logger.error(
                "reindex_batch_failed",
                record_class=result.record_class,
                batch_number=batch_number,
                offset=offset,
                error=str(e),
            )
            raise PartialBatchFailure(result.record_class, batch_number, offset) from e

        elapsed = time.perf_counter() - start
        size = len(records)
        result.records_indexed += size
        stats = BatchStats(
            batch_number=batch_number,
            offset=offset,
            size=size,
            started_at=started_at,
            elapsed_seconds=round(elapsed, 6),
            records_per_second=round(size / elapsed, 2) if elapsed > 0 else None,
            records_indexed=result.records_indexed,
        )
        result.batches.append(stats)

        logger.info(
            "reindex_batch_completed",
            record_class=result.record_class,
            batch_number=stats.batch_number,
            size=stats.size,
            records_indexed=stats.records_indexed,
            elapsed_seconds=stats.elapsed_seconds,
            records_per_second=stats.records_per_second,
        )

    def _commit(self, result: ReindexResult) -> None:
        self._index.commit()
        result.commits += 1
