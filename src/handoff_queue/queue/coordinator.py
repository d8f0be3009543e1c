"""Queue coordinator: ordering, claiming and assignment of handoff items."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from handoff_queue.domain import (
    ACTIVE_STATUSES,
    BoostResult,
    ClaimResult,
    ConcurrentModificationError,
    InvalidTransitionError,
    ItemNotFoundError,
    NoOperatorsAvailableError,
    NotAssignedError,
    OperatorWorkload,
    QueueError,
    QueueFilter,
    QueueItem,
    QueuePage,
    QueueStats,
    QueueStatus,
    RedistributionResult,
    merge_metadata,
    utc_now,
)
from handoff_queue.domain import models
from handoff_queue.events import EventBus, EventType
from handoff_queue.queue.priority import BoostThresholds, boost_target, sort_queue_items
from handoff_queue.queue.routing import select_least_loaded
from handoff_queue.storage import StoragePort

logger = logging.getLogger(__name__)


class QueueCoordinator:
    """Coordinates operator work over a storage port.

    Responsibilities:
    - Present each client's queue in service order
    - Let operators claim the next item or a specific one, and release it
    - Auto-assign items to the least-loaded operator with spare capacity
    - Hand a departing operator's items back to the queue
    - Promote items that have waited too long at their level

    The coordinator keeps no state between calls. Each write is a single-item
    conditional update carrying the version that was read, so a concurrent
    writer makes the update fail instead of being silently overwritten.
    """

    def __init__(
        self,
        storage: StoragePort,
        event_bus: EventBus | None = None,
        thresholds: BoostThresholds | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage
        self.event_bus = event_bus
        self.thresholds = thresholds or BoostThresholds()
        self._clock = clock

    async def get_queue(self, client_id: str, queue_filter: QueueFilter | None = None) -> QueuePage:
        """List a client's pending and assigned items in service order."""
        queue_filter = queue_filter or QueueFilter()
        page = await self.storage.query_queue(
            client_id,
            statuses=ACTIVE_STATUSES,
            priorities=queue_filter.priorities,
            limit=queue_filter.limit,
            offset=queue_filter.offset,
        )

        # Storage order is not trusted; the page is always re-sorted here.
        items = sort_queue_items(page.items)
        return QueuePage(
            items=items,
            total=page.total,
            has_more=queue_filter.offset + len(items) < page.total,
        )

    async def claim_next(self, client_id: str, operator_id: str) -> ClaimResult:
        """Claim the highest-priority, oldest pending item for an operator."""
        page = await self.storage.query_queue(
            client_id, statuses=[QueueStatus.PENDING], limit=1
        )
        if not page.items:
            logger.debug(f"No pending items for client {client_id}")
            return ClaimResult(success=False)

        candidate = page.items[0]
        try:
            item = await self._assign(candidate, operator_id)
        except ConcurrentModificationError as e:
            logger.warning(f"Operator {operator_id} lost claim race on item {candidate.id}")
            return ClaimResult(success=False, error=str(e))
        except ItemNotFoundError:
            logger.warning(f"Item {candidate.id} vanished before operator {operator_id} could claim it")
            return ClaimResult(
                success=False,
                error=f"Concurrent modification: item {candidate.id} no longer exists",
            )

        logger.info(f"Operator {operator_id} claimed item {item.id} ({item.priority.value})")
        await self._emit(EventType.ITEM_CLAIMED, item, operator_id=operator_id)
        return ClaimResult(success=True, item=item)

    async def claim_specific(self, item_id: str, operator_id: str) -> ClaimResult:
        """Claim a particular item.

        Claiming an item the operator already holds succeeds again and
        refreshes ``assigned_at``.
        """
        item = await self.storage.get_item(item_id)
        if item is None:
            return ClaimResult(success=False, error="Item not found")
        if item.status == QueueStatus.RESOLVED:
            return ClaimResult(success=False, error="Item already resolved")
        if item.status == QueueStatus.ASSIGNED and item.assigned_to != operator_id:
            return ClaimResult(success=False, error="Already assigned to another operator")

        try:
            claimed = await self._assign(item, operator_id)
        except ConcurrentModificationError as e:
            logger.warning(f"Operator {operator_id} lost claim race on item {item_id}")
            return ClaimResult(success=False, error=str(e))
        except ItemNotFoundError:
            return ClaimResult(success=False, error="Item not found")

        logger.info(f"Operator {operator_id} claimed item {item_id}")
        await self._emit(EventType.ITEM_CLAIMED, claimed, operator_id=operator_id)
        return ClaimResult(success=True, item=claimed)

    async def release(self, item_id: str, operator_id: str, reason: str) -> None:
        """Return a held item to the queue.

        Raises:
            ItemNotFoundError: the item does not exist.
            NotAssignedError: the operator is not the current holder.
        """
        item = await self.storage.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.assigned_to != operator_id:
            raise NotAssignedError(item_id, operator_id)

        now = self._clock()
        released = await self.storage.update_item(
            item.id,
            {
                "status": QueueStatus.PENDING,
                "assigned_to": None,
                "assigned_at": None,
                "metadata": merge_metadata(
                    item.metadata,
                    {
                        models.META_LAST_RELEASE_REASON: reason,
                        models.META_LAST_RELEASED_BY: operator_id,
                        models.META_LAST_RELEASED_AT: now.isoformat(),
                    },
                ),
            },
            expected_version=item.version,
        )

        logger.info(f"Operator {operator_id} released item {item_id}: {reason}")
        await self._emit(EventType.ITEM_RELEASED, released, operator_id=operator_id, reason=reason)

    async def get_stats(self, client_id: str) -> QueueStats:
        """Queue aggregates for a client, with average wait in minutes."""
        snapshot = await self.storage.get_queue_stats(client_id)
        return QueueStats.model_validate(
            {
                **snapshot.model_dump(),
                "avg_wait_time_minutes": snapshot.avg_wait_time_ms / 60000,
            }
        )

    async def get_operator_workload(self, client_id: str) -> list[OperatorWorkload]:
        """Current workload of the client's operators."""
        return await self.storage.get_operator_workload(client_id)

    async def redistribute_workload(self, leaving_operator_id: str) -> RedistributionResult:
        """Return every item held by an operator to the queue.

        Unlike every other operation this one spans all clients, since an
        operator going away affects everyone they serve. Items are released
        one at a time; the first failure stops the batch and the result
        counts only the items already released.
        """
        page = await self.storage.query_queue(
            None, statuses=[QueueStatus.ASSIGNED], assigned_to=leaving_operator_id
        )

        released_ids: list[str] = []
        result = RedistributionResult()
        for item in page.items:
            now = self._clock()
            try:
                await self.storage.update_item(
                    item.id,
                    {
                        "status": QueueStatus.PENDING,
                        "assigned_to": None,
                        "assigned_at": None,
                        "metadata": merge_metadata(
                            item.metadata,
                            {
                                models.META_REDISTRIBUTED_FROM: leaving_operator_id,
                                models.META_REDISTRIBUTED_AT: now.isoformat(),
                            },
                        ),
                    },
                    expected_version=item.version,
                )
            except QueueError as e:
                logger.warning(
                    f"Redistribution for {leaving_operator_id} stopped at item {item.id} "
                    f"after {len(released_ids)} items: {e}"
                )
                result.interrupted_item_id = item.id
                result.error = str(e)
                break
            released_ids.append(item.id)

        result.redistributed_count = len(released_ids)
        logger.info(f"Redistributed {result.redistributed_count} items from operator {leaving_operator_id}")

        if self.event_bus:
            await self.event_bus.emit(
                EventType.OPERATOR_REDISTRIBUTED,
                data={
                    "operator_id": leaving_operator_id,
                    "item_ids": released_ids,
                    "redistributed_count": result.redistributed_count,
                    "completed": result.completed,
                },
            )
        return result

    async def auto_assign(self, item_id: str) -> str:
        """Assign an item to the least-loaded operator with spare capacity.

        Returns the chosen operator's ID.

        Raises:
            ItemNotFoundError: the item does not exist.
            InvalidTransitionError: the item is not pending.
            NoOperatorsAvailableError: every available operator is at capacity.
        """
        item = await self.storage.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.status != QueueStatus.PENDING:
            raise InvalidTransitionError(item_id, item.status.value, "auto-assign")

        operators = await self.storage.get_available_operators(item.client_id)
        chosen = select_least_loaded(operators)
        if chosen is None:
            raise NoOperatorsAvailableError(item.client_id)

        assigned = await self._assign(item, chosen.operator_id)

        logger.info(
            f"Auto-assigned item {item_id} to operator {chosen.operator_id} "
            f"(load {chosen.current_load}/{chosen.max_capacity or 'unlimited'})"
        )
        await self._emit(EventType.ITEM_ASSIGNED, assigned, operator_id=chosen.operator_id)
        return chosen.operator_id

    async def apply_priority_boosts(self, client_id: str) -> BoostResult:
        """Promote pending items that have waited past their level's threshold.

        Each item moves up at most one level per call; repeated calls from a
        scheduler compound over time.
        """
        page = await self.storage.query_queue(client_id, statuses=[QueueStatus.PENDING])
        now = self._clock()

        result = BoostResult()
        for item in page.items:
            target = boost_target(item, now, self.thresholds)
            if target is None:
                continue

            try:
                boosted = await self.storage.update_item(
                    item.id,
                    {
                        "priority": target,
                        "metadata": merge_metadata(
                            item.metadata,
                            {
                                models.META_BOOSTED_AT: now.isoformat(),
                                models.META_PREVIOUS_PRIORITY: item.priority.value,
                                models.META_BOOST_REASON: models.BOOST_REASON_AGE,
                            },
                        ),
                    },
                    expected_version=item.version,
                )
            except QueueError as e:
                logger.warning(
                    f"Priority boost for client {client_id} stopped at item {item.id} "
                    f"after {result.boosted_count} items: {e}"
                )
                result.interrupted_item_id = item.id
                result.error = str(e)
                break

            result.boosted_count += 1
            logger.info(f"Boosted item {item.id} from {item.priority.value} to {target.value}")
            await self._emit(
                EventType.ITEM_BOOSTED, boosted, previous_priority=item.priority.value
            )

        if result.boosted_count:
            logger.info(f"Boosted {result.boosted_count} items for client {client_id}")
        return result

    async def _assign(self, item: QueueItem, operator_id: str) -> QueueItem:
        """Conditionally move an item to ``assigned`` for an operator."""
        return await self.storage.update_item(
            item.id,
            {
                "status": QueueStatus.ASSIGNED,
                "assigned_to": operator_id,
                "assigned_at": self._clock(),
            },
            expected_version=item.version,
        )

    async def _emit(self, event_type: EventType, item: QueueItem, **extra: Any) -> None:
        if not self.event_bus:
            return
        await self.event_bus.emit(
            event_type,
            data={
                "item_id": item.id,
                "priority": item.priority.value,
                "status": item.status.value,
                "assigned_to": item.assigned_to,
                **extra,
            },
            client_id=item.client_id,
        )
