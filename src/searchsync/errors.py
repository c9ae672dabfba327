"""Error kinds raised by the synchronization engine and its adapters."""

from typing import Any


class SyncError(Exception):
    """Base error for index synchronization failures.

    Attributes:
        kind: Stable error kind name used in API and CLI output.
    """

    kind = "sync_error"


class AdapterUnavailable(SyncError):
    """Raised when the index or record store backend cannot be reached."""

    kind = "adapter_unavailable"

    def __init__(self, backend: str, message: str) -> None:
        """Initialize adapter error.

        Args:
            backend: Which backend failed ("index" or "store").
            message: Error description.
        """
        super().__init__(f"{backend} unavailable: {message}")
        self.backend = backend


class InvalidBatchSize(SyncError):
    """Raised when a reindex batch size is not a positive integer."""

    kind = "invalid_batch_size"

    def __init__(self, batch_size: Any) -> None:
        super().__init__(f"Batch size must be a positive integer or None, got {batch_size!r}")
        self.batch_size = batch_size


class PartialBatchFailure(SyncError):
    """Raised when a record in a reindex batch fails to index."""

    kind = "partial_batch_failure"

    def __init__(self, record_class: str, batch_number: int, offset: int) -> None:
        """Initialize batch failure.

        Args:
            record_class: Class being rebuilt.
            batch_number: 1-based number of the failed batch.
            offset: Offset of the first record in the failed batch.
        """
        super().__init__(
            f"Reindex of {record_class} aborted in batch {batch_number} (offset {offset})"
        )
        self.record_class = record_class
        self.batch_number = batch_number
        self.offset = offset


class OrphanScanIncomplete(SyncError):
    """Raised when an orphan scan cannot load a complete key set."""

    kind = "orphan_scan_incomplete"

    def __init__(self, record_class: str, stage: str) -> None:
        """Initialize scan error.

        Args:
            record_class: Class being scanned.
            stage: Which key set failed to load ("index" or "store").
        """
        super().__init__(f"Orphan scan of {record_class} failed while loading {stage} keys")
        self.record_class = record_class
        self.stage = stage


class UnknownRecordClass(SyncError):
    """Raised for record class tags that were never registered."""

    kind = "unknown_record_class"

    def __init__(self, record_class: str) -> None:
        super().__init__(f"Record class not registered: {record_class}")
        self.record_class = record_class


class DocumentError(SyncError):
    """Raised when a record cannot be turned into an index document."""

    kind = "document_error"

    def __init__(self, record_class: str, key: Any, reason: str) -> None:
        super().__init__(f"Cannot index {record_class} {key!r}: {reason}")
        self.record_class = record_class
        self.key = key
        self.reason = reason
