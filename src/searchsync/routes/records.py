"""Record CRUD endpoints that publish lifecycle events."""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError

from searchsync.events.bus import EventBus
from searchsync.events.types import DomainEvent, EventType
from searchsync.services import SyncServices
from searchsync.store.schemas import SyncableRecord

router = APIRouter(prefix="/records", tags=["records"])


def _services(request: Request) -> SyncServices:
    return request.app.state.services


def _build(services: SyncServices, record_class: str, data: dict[str, Any]) -> SyncableRecord:
    """Validate a request body against the registered record type."""
    model = services.registry.get(record_class).model
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        ) from e


def _serialize(record: SyncableRecord) -> dict[str, Any]:
    return {"record_class": record.record_class, **record.model_dump()}


async def _publish(request: Request, event_type: EventType, record_class: str, key: int) -> None:
    event_bus: EventBus = request.app.state.event_bus
    await event_bus.publish(DomainEvent(type=event_type, record_class=record_class, key=key))


@router.post("/{record_class}", status_code=status.HTTP_201_CREATED)
async def create_record(
    record_class: str,
    data: dict[str, Any],
    request: Request,
) -> dict[str, Any]:
    """Create a record and publish ``record.saved``."""
    services = _services(request)
    record = _build(services, record_class, {k: v for k, v in data.items() if k != "id"})
    saved = await asyncio.to_thread(services.store.create, record)
    await _publish(request, EventType.RECORD_SAVED, record_class, saved.id)
    return _serialize(saved)


@router.get("/{record_class}/{key}")
async def get_record(record_class: str, key: int, request: Request) -> dict[str, Any]:
    """Fetch one record from the store."""
    services = _services(request)
    services.registry.get(record_class)
    record = await asyncio.to_thread(services.store.get, record_class, key)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return _serialize(record)


@router.put("/{record_class}/{key}")
async def update_record(
    record_class: str,
    key: int,
    data: dict[str, Any],
    request: Request,
) -> dict[str, Any]:
    """Replace a record and publish ``record.saved``."""
    services = _services(request)
    record = _build(services, record_class, {**data, "id": key})
    if not await asyncio.to_thread(services.store.update, record):
        raise HTTPException(status_code=404, detail="Record not found")
    await _publish(request, EventType.RECORD_SAVED, record_class, key)
    return _serialize(record)


@router.delete("/{record_class}/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(record_class: str, key: int, request: Request) -> None:
    """Delete a record and publish ``record.deleted``."""
    services = _services(request)
    services.registry.get(record_class)
    if not await asyncio.to_thread(services.store.delete, record_class, key):
        raise HTTPException(status_code=404, detail="Record not found")
    await _publish(request, EventType.RECORD_DELETED, record_class, key)
