"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from handoff_queue.config import get_settings
from handoff_queue.db import Database, SQLiteQueueStore
from handoff_queue.events import EventBus, event_bus
from handoff_queue.queue import BoostThresholds, QueueCoordinator


async def get_db(request: Request) -> Database:
    """Get the database instance from app state."""
    return request.app.state.db


async def get_event_bus(request: Request) -> EventBus:
    return getattr(request.app.state, "event_bus", event_bus)


async def get_store(db: Annotated[Database, Depends(get_db)]) -> SQLiteQueueStore:
    return SQLiteQueueStore(db)


async def get_coordinator(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    bus: Annotated[EventBus, Depends(get_event_bus)],
) -> QueueCoordinator:
    """A coordinator per request; it holds no state between calls."""
    return QueueCoordinator(
        store,
        event_bus=bus,
        thresholds=BoostThresholds.from_settings(get_settings()),
    )
