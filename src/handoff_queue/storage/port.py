"""Storage contract consumed by the queue coordinator.

The coordinator owns no state. Everything durable (item status, assignment,
priority, workload) sits behind this interface, which is also the only place
concurrency is controlled: every write names the item version the caller
read, and a stale version is rejected with ``ConcurrentModificationError``.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from handoff_queue.domain import (
    OperatorWorkload,
    Priority,
    QueueItem,
    QueuePage,
    QueueStatsSnapshot,
    QueueStatus,
)


class StoragePort(ABC):
    """Abstract storage capability set for the handoff queue."""

    @abstractmethod
    async def query_queue(
        self,
        client_id: str | None,
        statuses: Sequence[QueueStatus] | None = None,
        priorities: Sequence[Priority] | None = None,
        assigned_to: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> QueuePage:
        """List items ordered by priority rank, then oldest first.

        ``client_id`` may only be None when ``assigned_to`` is given, which
        requests a cross-client listing of one operator's items.
        """

    @abstractmethod
    async def get_item(self, item_id: str) -> QueueItem | None:
        """Get an item by ID, or None if it does not exist."""

    @abstractmethod
    async def update_item(
        self,
        item_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> QueueItem:
        """Apply ``changes`` if the stored version still equals ``expected_version``.

        Raises:
            ConcurrentModificationError: the item changed since it was read.
            ItemNotFoundError: the item no longer exists.
        """

    @abstractmethod
    async def get_queue_stats(self, client_id: str) -> QueueStatsSnapshot:
        """Aggregate counts and wait times for a client's active items."""

    @abstractmethod
    async def get_operator_workload(self, client_id: str) -> list[OperatorWorkload]:
        """Workload of every operator registered for the client."""

    @abstractmethod
    async def get_available_operators(self, client_id: str) -> list[OperatorWorkload]:
        """Workload of operators currently eligible to receive new work."""
