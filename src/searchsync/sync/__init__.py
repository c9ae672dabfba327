"""Index synchronization engine, batch rebuilds and orphan repair."""

from searchsync.sync.batch import DEFAULT_BATCH_SIZE, BatchStats, ReindexResult
from searchsync.sync.engine import SyncEngine
from searchsync.sync.hooks import MutationHooks, subscribe_mutation_hooks
from searchsync.sync.protocols import IndexClient, RecordRef, RecordSource, Syncable
from searchsync.sync.registry import HookOptions, SyncRegistry

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchStats",
    "HookOptions",
    "IndexClient",
    "MutationHooks",
    "RecordRef",
    "RecordSource",
    "ReindexResult",
    "SyncEngine",
    "SyncRegistry",
    "Syncable",
    "subscribe_mutation_hooks",
]
