"""Record lifecycle hooks that feed single-record changes to the engine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import structlog

from searchsync.errors import SyncError
from searchsync.events.types import WILDCARD_TOPIC, DomainEvent, EventType
from searchsync.sync.protocols import RecordIdentity, RecordRef, Syncable

if TYPE_CHECKING:
    from searchsync.events.bus import EventBus
    from searchsync.store.records import RecordStore
    from searchsync.sync.engine import SyncEngine

logger = structlog.get_logger()


class MutationHooks:
    """Post-save and post-delete hooks honoring per-class options.

    Hooks never commit; visibility comes from the next commit.
    """

    def __init__(self, engine: SyncEngine) -> None:
        self._engine = engine

    def after_save(self, record: Syncable) -> bool:
        """Index a record after it was created or updated.

        Returns:
            True if the record was sent to the index.
        """
        options = self._engine.registry.get(record.record_class).hooks
        if not options.auto_index_on_save:
            logger.debug("hook_index_skipped", record_class=record.record_class)
            return False
        self._engine.index_record(record)
        return True

    def after_delete(self, record: RecordIdentity) -> bool:
        """Remove a record's entry after it was deleted.

        Returns:
            True if a removal was sent to the index.
        """
        options = self._engine.registry.get(record.record_class).hooks
        if not options.auto_remove_on_delete:
            logger.debug("hook_remove_skipped", record_class=record.record_class)
            return False
        self._engine.remove_record(record)
        return True


async def subscribe_mutation_hooks(
    event_bus: EventBus,
    hooks: MutationHooks,
    store: RecordStore,
) -> asyncio.Task[None]:
    """Subscribe the hooks to every record event and start consuming.

    The subscription exists before this returns, so events published
    afterwards are never missed.

    Args:
        event_bus: Application event bus instance.
        hooks: Hooks bound to the sync engine.
        store: Record store used to load saved records.

    Returns:
        The long-lived consumer task.
    """
    subscriber_id, events = await event_bus.subscribe(topic=WILDCARD_TOPIC)
    logger.info("mutation_subscriber_started", subscriber_id=subscriber_id)
    return asyncio.create_task(run_mutation_subscriber(events, hooks, store))


async def run_mutation_subscriber(
    events: AsyncIterator[DomainEvent],
    hooks: MutationHooks,
    store: RecordStore,
) -> None:
    """Run the lifecycle hooks for each record event.

    Runs as a long-lived asyncio task. Saved records are re-read from the
    store so the index receives the latest committed version; records
    already deleted again are skipped. A failing hook is logged and the
    subscriber keeps consuming.

    Args:
        events: Event stream from an event bus subscription.
        hooks: Hooks bound to the sync engine.
        store: Record store used to load saved records.
    """
    try:
        async for event in events:
            try:
                if event.type == EventType.RECORD_SAVED:
                    record = await asyncio.to_thread(store.get, event.record_class, event.key)
                    if record is None:
                        logger.debug(
                            "hook_record_vanished",
                            record_class=event.record_class,
                            key=event.key,
                        )
                        continue
                    await asyncio.to_thread(hooks.after_save, record)

                elif event.type == EventType.RECORD_DELETED:
                    ref = RecordRef(record_class=event.record_class, key=event.key)
                    await asyncio.to_thread(hooks.after_delete, ref)
            except SyncError as e:
                logger.error(
                    "hook_failed",
                    event_type=event.type.value,
                    record_class=event.record_class,
                    key=event.key,
                    error=str(e),
                    kind=e.kind,
                )
    except asyncio.CancelledError:
        logger.info("mutation_subscriber_stopped")
        raise
