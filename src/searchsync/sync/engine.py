"""Index synchronization engine.

Mirrors single-record mutations into the search index, rebuilds whole
record classes in batches and repairs index entries whose records no
longer exist. Every call is synchronous and blocks on the adapters; the
engine starts no background work and only tracks running rebuilds.
"""

import threading
from collections.abc import Sequence

import structlog

from searchsync.sync.batch import DEFAULT_BATCH_SIZE, BatchCoordinator, ReindexResult
from searchsync.sync.orphans import OrphanReconciler
from searchsync.sync.protocols import (
    IndexClient,
    RecordIdentity,
    RecordKey,
    RecordSource,
    Syncable,
)
from searchsync.sync.registry import SyncRegistry

logger = structlog.get_logger()


class SyncEngine:
    """Keeps the search index consistent with the record store.

    Methods without ``_and_commit`` stage changes that become visible
    after the next commit; the ``_and_commit`` variants commit before
    returning.
    """

    def __init__(
        self,
        index: IndexClient,
        source: RecordSource,
        registry: SyncRegistry,
    ) -> None:
        """Initialize the engine.

        Args:
            index: Search index client.
            source: Record store adapter.
            registry: Registered syncable record classes.
        """
        self._index = index
        self._source = source
        self._registry = registry
        self._batches = BatchCoordinator(index, source)
        self._orphans = OrphanReconciler(self, index, source)
        self._rebuilds = 0
        self._rebuild_lock = threading.Lock()

    @property
    def registry(self) -> SyncRegistry:
        """Registry of syncable record classes."""
        return self._registry

    def index_record(self, record: Syncable) -> None:
        """Upsert one record into the index without committing."""
        self._registry.get(record.record_class)
        self._index.index_one(record)
        logger.debug("record_indexed", record_class=record.record_class, key=record.primary_key)

    def index_record_and_commit(self, record: Syncable) -> None:
        """Upsert one record and commit so it is queryable on return."""
        self.index_record(record)
        self.commit()

    def index_records(self, records: Sequence[Syncable]) -> None:
        """Upsert several records in one index call without committing."""
        for record_class in {record.record_class for record in records}:
            self._registry.get(record_class)
        self._index.index_many(records)

    def remove_record(self, record: RecordIdentity) -> None:
        """Remove one record's entry without committing.

        Accepts a record or a RecordRef placeholder.
        """
        self._registry.get(record.record_class)
        self._index.remove_one(record.record_class, record.primary_key)
        logger.debug("record_removed", record_class=record.record_class, key=record.primary_key)

    def remove_record_and_commit(self, record: RecordIdentity) -> None:
        """Remove one record's entry and commit."""
        self.remove_record(record)
        self.commit()

    def remove_all_of_class(self, record_class: str) -> None:
        """Remove every entry of a class without committing.

        Until the next commit the removal is neither durable nor visible.
        """
        self._registry.get(record_class)
        self._index.remove_all(record_class)
        logger.info("record_class_cleared", record_class=record_class)

    def remove_all_of_class_and_commit(self, record_class: str) -> None:
        """Remove every entry of a class and commit."""
        self.remove_all_of_class(record_class)
        self.commit()

    def commit(self) -> int:
        """Make staged index changes durable and visible.

        Returns:
            Number of operations the index applied.
        """
        return self._index.commit()

    @property
    def rebuild_in_progress(self) -> bool:
        """Whether a reindex_class call is running on any thread."""
        with self._rebuild_lock:
            return self._rebuilds > 0

    def reindex_class(
        self,
        record_class: str,
        batch_size: int | None = DEFAULT_BATCH_SIZE,
        commit_per_batch: bool = True,
    ) -> ReindexResult:
        """Rebuild the index for a class from the record store.

        Removes the class from the index, loads records in pages of
        ``batch_size`` (or all at once when None) and always finishes
        with a commit, so the rebuilt index is visible on return.

        With ``commit_per_batch=False`` the old entries stay visible
        until the final commit only if nothing else commits meanwhile;
        the server's auto-commit task checks ``rebuild_in_progress`` and
        holds off while a rebuild runs.

        Raises:
            UnknownRecordClass: If the class is not registered.
            InvalidBatchSize: If batch_size is not None or a positive int.
            AdapterUnavailable: If a backend cannot be reached.
            PartialBatchFailure: If a page fails to load or index.
        """
        self._registry.get(record_class)
        with self._rebuild_lock:
            self._rebuilds += 1
        try:
            return self._batches.reindex(record_class, batch_size, commit_per_batch)
        finally:
            with self._rebuild_lock:
                self._rebuilds -= 1

    def search_keys(self, record_class: str, criteria: str | None = None) -> list[RecordKey]:
        """Keys of indexed records matching a keyword query.

        Useful when search is one step of a larger lookup and the
        records themselves are not needed.
        """
        self._registry.get(record_class)
        return self._index.query_keys(record_class, criteria)

    def find_orphans(self, record_class: str) -> list[RecordKey]:
        """Keys indexed for a class that have no record in the store."""
        self._registry.get(record_class)
        return self._orphans.find_orphans(record_class)

    def repair_orphans(self, record_class: str) -> list[RecordKey]:
        """Stage removal of orphaned entries; commit is left to the caller."""
        self._registry.get(record_class)
        return self._orphans.repair_orphans(record_class)
