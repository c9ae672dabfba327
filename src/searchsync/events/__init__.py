"""Record lifecycle events and the in-process event bus."""

from searchsync.events.bus import EventBus
from searchsync.events.types import WILDCARD_TOPIC, DomainEvent, EventType

__all__ = [
    "DomainEvent",
    "EventBus",
    "EventType",
    "WILDCARD_TOPIC",
]
