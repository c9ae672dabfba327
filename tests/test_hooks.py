"""Lifecycle hooks and the event-driven subscriber."""

import asyncio

from conftest import Article, FakeIndex, make_article

from searchsync.events.bus import EventBus
from searchsync.events.types import DomainEvent, EventType
from searchsync.services import SyncServices
from searchsync.store.schemas import document_type
from searchsync.sync.engine import SyncEngine
from searchsync.sync.hooks import MutationHooks, subscribe_mutation_hooks
from searchsync.sync.protocols import RecordRef
from searchsync.sync.registry import HookOptions


def test_hooks_index_and_remove_by_default(engine: SyncEngine, fake_index: FakeIndex) -> None:
    """Default options index on save and remove on delete, without commit."""
    hooks = MutationHooks(engine)

    assert hooks.after_save(make_article(1))
    assert hooks.after_delete(RecordRef(record_class="Article", key=1))

    assert fake_index.calls == ["index_one", "remove_one"]


def test_disabled_hooks_skip_index(engine: SyncEngine, fake_index: FakeIndex) -> None:
    """Per-class options can turn either hook off."""
    Draft = document_type("Draft")
    engine.registry.register(
        Draft, HookOptions(auto_index_on_save=False, auto_remove_on_delete=False)
    )
    hooks = MutationHooks(engine)

    assert not hooks.after_save(Draft(id=1, title="wip"))
    assert not hooks.after_delete(RecordRef(record_class="Draft", key=1))
    assert fake_index.calls == []


def test_subscriber_mirrors_store_events(services: SyncServices) -> None:
    """Saved and deleted events reach the index through the hooks."""

    async def scenario() -> tuple[list, list]:
        bus = EventBus()
        task = await subscribe_mutation_hooks(bus, services.hooks, services.store)

        kept = services.store.create(Article(title="kept"))
        gone = services.store.create(Article(title="gone"))
        for record in (kept, gone):
            await bus.publish(
                DomainEvent(type=EventType.RECORD_SAVED, record_class="Article", key=record.id)
            )
        services.store.delete("Article", gone.id)
        await bus.publish(
            DomainEvent(type=EventType.RECORD_DELETED, record_class="Article", key=gone.id)
        )

        for _ in range(200):
            if services.search_index.pending_count >= 2:
                break
            await asyncio.sleep(0.01)

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        services.engine.commit()
        return services.engine.search_keys("Article"), services.engine.find_orphans("Article")

    keys, orphans = asyncio.run(scenario())

    assert keys == [1]
    assert orphans == []


def test_subscriber_survives_failing_hook(services: SyncServices) -> None:
    """Events for unknown classes are logged and the subscriber continues."""

    async def scenario() -> list:
        bus = EventBus()
        task = await subscribe_mutation_hooks(bus, services.hooks, services.store)

        await bus.publish(
            DomainEvent(type=EventType.RECORD_DELETED, record_class="Unknown", key=1)
        )
        record = services.store.create(Article(title="after"))
        await bus.publish(
            DomainEvent(type=EventType.RECORD_SAVED, record_class="Article", key=record.id)
        )

        for _ in range(200):
            if services.search_index.pending_count:
                break
            await asyncio.sleep(0.01)

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        services.engine.commit()
        return services.engine.search_keys("Article")

    assert asyncio.run(scenario()) == [1]
