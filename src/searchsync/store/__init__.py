"""System of record: record types and the SQLite record store."""

from searchsync.store.records import RecordStore
from searchsync.store.schemas import Document, SyncableRecord, document_type

__all__ = [
    "Document",
    "RecordStore",
    "SyncableRecord",
    "document_type",
]
