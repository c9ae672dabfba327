"""Detection and removal of index entries without a backing record."""

from typing import TYPE_CHECKING

import structlog

from searchsync.errors import OrphanScanIncomplete
from searchsync.sync.protocols import IndexClient, RecordKey, RecordRef, RecordSource

if TYPE_CHECKING:
    from searchsync.sync.engine import SyncEngine

logger = structlog.get_logger()


class OrphanReconciler:
    """Diffs indexed keys against store keys for one record class.

    Both key sets are loaded fully into memory, so memory grows with
    index size plus store size.
    """

    def __init__(self, engine: "SyncEngine", index: IndexClient, source: RecordSource) -> None:
        self._engine = engine
        self._index = index
        self._source = source

    def find_orphans(self, record_class: str) -> list[RecordKey]:
        """Keys present in the index but missing from the store.

        Ordering of the result is not part of the contract.

        Raises:
            OrphanScanIncomplete: If either key set cannot be loaded.
        """
        try:
            indexed_keys = set(self._index.query_keys(record_class, None))
        except Exception as e:
            logger.error("orphan_scan_failed", record_class=record_class, stage="index", error=str(e))
            raise OrphanScanIncomplete(record_class, "index") from e

        try:
            store_keys = set(self._source.fetch_keys(record_class))
        except Exception as e:
            logger.error("orphan_scan_failed", record_class=record_class, stage="store", error=str(e))
            raise OrphanScanIncomplete(record_class, "store") from e

        orphans = sorted(indexed_keys - store_keys)
        logger.info(
            "orphans_found",
            record_class=record_class,
            indexed=len(indexed_keys),
            stored=len(store_keys),
            orphans=len(orphans),
        )
        return orphans

    def repair_orphans(self, record_class: str) -> list[RecordKey]:
        """Stage removal of every orphaned entry; the caller commits.

        Returns:
            Keys whose removal was staged.

        Raises:
            OrphanScanIncomplete: If the scan fails; nothing is removed.
        """
        orphans = self.find_orphans(record_class)
        for key in orphans:
            self._engine.remove_record(RecordRef(record_class=record_class, key=key))

        if orphans:
            logger.info("orphans_repaired", record_class=record_class, removed=len(orphans))
        return orphans
