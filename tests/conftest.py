"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from handoff_queue.db import Database, SQLiteQueueStore
from handoff_queue.domain import Operator, Priority, QueueItem, QueueStatus

# Fixed evaluation time used by coordinators under test
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
async def db() -> AsyncGenerator[Database, None]:
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        database = Database(Path(tmpdir) / "test.db")
        await database.connect()
        yield database
        await database.disconnect()


@pytest.fixture
async def store(db: Database) -> SQLiteQueueStore:
    return SQLiteQueueStore(db)


async def add_item(
    store: SQLiteQueueStore,
    client_id: str = "acme",
    priority: Priority = Priority.MEDIUM,
    age_minutes: float = 0,
    now: datetime = NOW,
    **fields,
) -> QueueItem:
    """Insert an item created ``age_minutes`` before ``now``."""
    item = QueueItem(
        client_id=client_id,
        thread_id=fields.pop("thread_id", f"thread-{priority.value}-{age_minutes}"),
        priority=priority,
        created_at=now - timedelta(minutes=age_minutes),
        **fields,
    )
    return await store.items.create(item)


async def add_assigned(
    store: SQLiteQueueStore,
    operator_id: str,
    client_id: str = "acme",
    count: int = 1,
) -> list[QueueItem]:
    """Insert ``count`` items already held by an operator."""
    return [
        await add_item(
            store,
            client_id=client_id,
            age_minutes=i,
            status=QueueStatus.ASSIGNED,
            assigned_to=operator_id,
            assigned_at=NOW,
            thread_id=f"thread-{operator_id}-{client_id}-{i}",
        )
        for i in range(count)
    ]


async def add_operator(
    store: SQLiteQueueStore,
    operator_id: str,
    client_id: str = "acme",
    max_capacity: int | None = None,
    available: bool = True,
) -> Operator:
    return await store.operators.register(
        Operator(
            id=operator_id,
            client_id=client_id,
            name=operator_id.title(),
            max_capacity=max_capacity,
            available=available,
        )
    )
