"""Construction of the store, index and engine from settings."""

import structlog

from searchsync.config import Settings
from searchsync.search.index import SearchIndex
from searchsync.store.records import RecordStore
from searchsync.store.schemas import document_type
from searchsync.sync.engine import SyncEngine
from searchsync.sync.hooks import MutationHooks
from searchsync.sync.registry import HookOptions, SyncRegistry

logger = structlog.get_logger()


class SyncServices:
    """Wired-up collaborators shared by the API and the CLI.

    Attributes:
        registry: Registered record classes.
        store: Record store.
        search_index: Search index client.
        engine: Sync engine bound to store and index.
        hooks: Lifecycle hooks bound to the engine.
    """

    def __init__(self, settings: Settings) -> None:
        """Register configured record classes and build collaborators.

        Args:
            settings: Service configuration.
        """
        self.registry = SyncRegistry()
        hook_options = HookOptions(
            auto_index_on_save=settings.auto_index_on_save,
            auto_remove_on_delete=settings.auto_remove_on_delete,
        )
        for record_class in settings.record_classes:
            self.registry.register(document_type(record_class), hook_options)

        self.store = RecordStore(self.registry, settings.store_path)
        self.search_index = SearchIndex(settings.index_path)
        self.engine = SyncEngine(self.search_index, self.store, self.registry)
        self.hooks = MutationHooks(self.engine)

    def open(self) -> None:
        """Open store and index connections."""
        self.store.initialize()
        self.search_index.initialize()
        logger.info("sync_services_ready", record_classes=self.registry.record_classes)

    def close(self, commit: bool = True) -> None:
        """Close index and store, first committing staged index changes.

        Args:
            commit: Commit staged changes; False drops them, e.g. after
                a failed rebuild.
        """
        try:
            if commit and self.search_index.pending_count:
                self.engine.commit()
        finally:
            self.search_index.close()
            self.store.close()
