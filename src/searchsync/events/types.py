"""Domain event types for record lifecycle changes."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Record lifecycle events."""

    RECORD_SAVED = "record.saved"
    RECORD_DELETED = "record.deleted"


WILDCARD_TOPIC = "*"


class DomainEvent(BaseModel):
    """Typed event published after a record mutation commits.

    Attributes:
        id: Unique event identifier (UUID).
        type: Lifecycle event kind.
        timestamp: Event timestamp in UTC.
        record_class: Class tag of the mutated record; also the topic.
        key: Primary key of the mutated record.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    record_class: str
    key: int | str

    @property
    def topic(self) -> str:
        """Routing topic for subscribers."""
        return self.record_class
