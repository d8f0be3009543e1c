"""Event bus for broadcasting queue changes to operator consoles."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from handoff_queue.events.types import Event, EventType

logger = logging.getLogger(__name__)


class EventBus:
    """Centralized event bus for broadcasting events to subscribers.

    Supports both:
    - Queues for WebSocket streaming, optionally filtered by client
    - Callback-based subscriptions for internal handlers
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, tuple[asyncio.Queue[Event], str | None]] = {}
        self._callbacks: list[Callable[[Event], Any]] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, subscriber_id: str, client_id: str | None = None) -> asyncio.Queue[Event]:
        """Subscribe to events and return a queue to receive them.

        Args:
            subscriber_id: Unique ID for this subscriber (e.g., WebSocket connection ID)
            client_id: Only deliver events for this client (None = all events)
        """
        async with self._lock:
            queue: asyncio.Queue[Event] = asyncio.Queue()
            self._subscribers[subscriber_id] = (queue, client_id)
            logger.debug(f"Subscriber {subscriber_id} connected (client: {client_id or 'all'})")
            return queue

    async def unsubscribe(self, subscriber_id: str) -> None:
        """Unsubscribe from events."""
        async with self._lock:
            if self._subscribers.pop(subscriber_id, None) is not None:
                logger.debug(f"Subscriber {subscriber_id} disconnected")

    def add_callback(self, callback: Callable[[Event], Any]) -> None:
        """Add a callback to be called for every event."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Event], Any]) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers and callbacks."""
        logger.debug(f"Publishing event: {event.type.value}")

        async with self._lock:
            for subscriber_id, (queue, client_filter) in list(self._subscribers.items()):
                if client_filter is not None and event.client_id not in (None, client_filter):
                    continue
                try:
                    await queue.put(event)
                except Exception as e:
                    logger.error(f"Failed to send event to {subscriber_id}: {e}")

        for callback in self._callbacks:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Callback error: {e}")

    async def emit(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        client_id: str | None = None,
    ) -> Event:
        """Convenience method to create and publish an event."""
        event = Event(type=event_type, data=data or {}, client_id=client_id)
        await self.publish(event)
        return event

    @property
    def subscriber_count(self) -> int:
        """Get the number of active subscribers."""
        return len(self._subscribers)


# Global event bus instance
event_bus = EventBus()
