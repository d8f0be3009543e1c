"""Event system for real-time queue updates."""

from handoff_queue.events.bus import EventBus, event_bus
from handoff_queue.events.types import Event, EventType

__all__ = ["Event", "EventBus", "EventType", "event_bus"]
