"""SQLite implementation of the queue storage contract."""

from collections.abc import Sequence
from typing import Any

from handoff_queue.db.connection import Database
from handoff_queue.db.repositories import OperatorRepository, QueueItemRepository
from handoff_queue.domain import (
    OperatorWorkload,
    Priority,
    QueueItem,
    QueuePage,
    QueueStatsSnapshot,
    QueueStatus,
)
from handoff_queue.storage import StoragePort


class SQLiteQueueStore(StoragePort):
    """Storage port backed by the aiosqlite ``Database``.

    Conditional writes use the item's ``version`` column, so two writers
    racing on the same item produce exactly one winner.
    """

    def __init__(self, db: Database):
        self.db = db
        self.items = QueueItemRepository(db)
        self.operators = OperatorRepository(db)

    async def query_queue(
        self,
        client_id: str | None,
        statuses: Sequence[QueueStatus] | None = None,
        priorities: Sequence[Priority] | None = None,
        assigned_to: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> QueuePage:
        return await self.items.query(
            client_id,
            statuses=statuses,
            priorities=priorities,
            assigned_to=assigned_to,
            limit=limit,
            offset=offset,
        )

    async def get_item(self, item_id: str) -> QueueItem | None:
        return await self.items.get(item_id)

    async def update_item(
        self,
        item_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> QueueItem:
        return await self.items.update_conditional(item_id, changes, expected_version)

    async def get_queue_stats(self, client_id: str) -> QueueStatsSnapshot:
        return await self.items.stats(client_id)

    async def get_operator_workload(self, client_id: str) -> list[OperatorWorkload]:
        return await self.operators.workload(client_id)

    async def get_available_operators(self, client_id: str) -> list[OperatorWorkload]:
        return await self.operators.workload(client_id, available_only=True)
