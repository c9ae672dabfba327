"""In-memory event bus with per-record-class topics."""

import asyncio
import uuid
from collections.abc import AsyncIterator

import structlog

from searchsync.events.types import WILDCARD_TOPIC, DomainEvent

logger = structlog.get_logger()


class EventBus:
    """Async pub/sub bus fanning record events out to subscribers.

    Topics are record class tags, created on first subscription; the
    wildcard topic receives every event. Full subscriber queues drop
    their oldest event.

    Attributes:
        queue_size: Maximum size of each subscriber queue.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        queue_size: int = 1000,
        max_subscribers: int = 16,
    ) -> None:
        """Initialize event bus.

        Args:
            queue_size: Maximum items per subscriber queue.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self._subscribers: dict[str, dict[str, asyncio.Queue[DomainEvent]]] = {
            WILDCARD_TOPIC: {},
        }
        self._queue_size = queue_size
        self._max_subscribers = max_subscribers
        self._dropped_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Total number of active subscribers across all topics."""
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def dropped_events(self) -> int:
        """Total number of events dropped due to queue overflow."""
        return self._dropped_count

    async def publish(self, event: DomainEvent) -> int:
        """Deliver an event to its record class topic and the wildcard.

        Args:
            event: Domain event to publish.

        Returns:
            Number of subscribers that received the event.
        """
        delivered = 0
        for topic in (event.topic, WILDCARD_TOPIC):
            for queue in list(self._subscribers.get(topic, {}).values()):
                if queue.full():
                    queue.get_nowait()
                    self._dropped_count += 1
                    logger.warning(
                        "event_dropped",
                        topic=topic,
                        dropped_total=self._dropped_count,
                    )
                queue.put_nowait(event)
                delivered += 1
        return delivered

    async def subscribe(
        self,
        topic: str = WILDCARD_TOPIC,
    ) -> tuple[str, AsyncIterator[DomainEvent]]:
        """Subscribe to events of one record class, or all of them.

        Args:
            topic: Record class tag, or "*" for every class.

        Returns:
            Tuple of (subscriber_id, event_iterator).

        Raises:
            ValueError: If maximum subscribers reached.
        """
        async with self._lock:
            if self.subscriber_count >= self._max_subscribers:
                raise ValueError("Maximum subscribers reached")

            subscriber_id = str(uuid.uuid4())
            queue: asyncio.Queue[DomainEvent] = asyncio.Queue(maxsize=self._queue_size)
            self._subscribers.setdefault(topic, {})[subscriber_id] = queue

        async def event_iterator() -> AsyncIterator[DomainEvent]:
            try:
                while True:
                    yield await queue.get()
            finally:
                await self.unsubscribe(topic, subscriber_id)

        return subscriber_id, event_iterator()

    async def unsubscribe(self, topic: str, subscriber_id: str) -> None:
        """Remove a subscriber from the bus."""
        async with self._lock:
            self._subscribers.get(topic, {}).pop(subscriber_id, None)
            logger.debug("subscriber_removed", subscriber_id=subscriber_id, topic=topic)
