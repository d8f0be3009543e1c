"""Queue API routes."""

import logging
from typing import Annotated, Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from handoff_queue.api.deps import get_coordinator, get_event_bus, get_store
from handoff_queue.db import SQLiteQueueStore
from handoff_queue.domain import (
    BoostResult,
    ClaimResult,
    ConcurrentModificationError,
    InvalidTransitionError,
    ItemNotFoundError,
    NoOperatorsAvailableError,
    NotAssignedError,
    Priority,
    QueueError,
    QueueFilter,
    QueueItem,
    QueuePage,
    QueueStats,
)
from handoff_queue.events import EventBus, EventType
from handoff_queue.queue import QueueCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()


class ItemCreate(BaseModel):
    """Request body for handing a conversation to the queue."""

    client_id: str
    thread_id: str
    priority: Priority = Priority.MEDIUM
    reason: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class ClaimRequest(BaseModel):
    """Request body for claiming an item."""

    operator_id: str


class ReleaseRequest(BaseModel):
    """Request body for releasing an item."""

    operator_id: str
    reason: str = ""


class ResolveRequest(BaseModel):
    """Request body for resolving an item."""

    resolved_by: str | None = None


class AutoAssignResponse(BaseModel):
    assigned_to: str


def raise_for_queue_error(error: QueueError) -> NoReturn:
    """Translate a queue failure into an HTTP error."""
    status_code = 400
    if isinstance(error, ItemNotFoundError):
        status_code = 404
    elif isinstance(error, NotAssignedError):
        status_code = 403
    elif isinstance(error, ConcurrentModificationError | InvalidTransitionError):
        status_code = 409
    elif isinstance(error, NoOperatorsAvailableError):
        status_code = 503
    raise HTTPException(status_code=status_code, detail=str(error)) from error


@router.post("/items", response_model=QueueItem, status_code=201)
async def create_item(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    bus: Annotated[EventBus, Depends(get_event_bus)],
    body: ItemCreate,
) -> QueueItem:
    """Accept a handoff item from the detection layer as pending work."""
    item = QueueItem(
        client_id=body.client_id,
        thread_id=body.thread_id,
        priority=body.priority,
        reason=body.reason,
        metadata=body.metadata,
    )
    await store.items.create(item)
    logger.info(f"Queued item {item.id} for client {item.client_id} ({item.priority.value})")
    await bus.emit(
        EventType.QUEUE_UPDATED,
        data={"item_id": item.id, "action": "created"},
        client_id=item.client_id,
    )
    return item


@router.get("/items", include_in_schema=False)
async def list_items_without_client() -> None:
    """Queues are per client; keeps ``items`` from being read as a client ID."""
    raise HTTPException(status_code=404, detail="Queues are listed per client")


@router.get("/items/{item_id}", response_model=QueueItem)
async def get_item(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    item_id: str,
) -> QueueItem:
    """Get a single item."""
    item = await store.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.post("/items/{item_id}/claim", response_model=ClaimResult)
async def claim_item(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    item_id: str,
    body: ClaimRequest,
) -> ClaimResult:
    """Claim a specific item. Failures are reported in the body, not as errors."""
    return await coordinator.claim_specific(item_id, body.operator_id)


@router.post("/items/{item_id}/release", status_code=204)
async def release_item(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    item_id: str,
    body: ReleaseRequest,
) -> None:
    """Return a held item to the queue."""
    try:
        await coordinator.release(item_id, body.operator_id, body.reason)
    except QueueError as e:
        logger.warning(f"Release of item {item_id} by {body.operator_id} refused: {e}")
        raise_for_queue_error(e)


@router.post("/items/{item_id}/auto-assign", response_model=AutoAssignResponse)
async def auto_assign_item(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    item_id: str,
) -> AutoAssignResponse:
    """Assign an item to the least-loaded available operator."""
    try:
        operator_id = await coordinator.auto_assign(item_id)
    except QueueError as e:
        logger.warning(f"Auto-assign of item {item_id} failed: {e}")
        raise_for_queue_error(e)
    return AutoAssignResponse(assigned_to=operator_id)


@router.post("/items/{item_id}/resolve", response_model=QueueItem)
async def resolve_item(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    bus: Annotated[EventBus, Depends(get_event_bus)],
    item_id: str,
    body: ResolveRequest,
) -> QueueItem:
    """Mark an item resolved, taking it out of the queue."""
    try:
        item = await store.items.resolve(item_id, resolved_by=body.resolved_by)
    except QueueError as e:
        raise_for_queue_error(e)
    logger.info(f"Resolved item {item_id}")
    await bus.emit(
        EventType.QUEUE_UPDATED,
        data={"item_id": item.id, "action": "resolved"},
        client_id=item.client_id,
    )
    return item


@router.get("/{client_id}", response_model=QueuePage)
async def get_queue(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    client_id: str,
    priority: Annotated[list[Priority] | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> QueuePage:
    """List a client's pending and assigned items in service order."""
    queue_filter = QueueFilter(priorities=priority or None, limit=limit, offset=offset)
    return await coordinator.get_queue(client_id, queue_filter)


@router.post("/{client_id}/claim-next", response_model=ClaimResult)
async def claim_next(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    client_id: str,
    body: ClaimRequest,
) -> ClaimResult:
    """Claim the next item in service order for an operator."""
    return await coordinator.claim_next(client_id, body.operator_id)


@router.get("/{client_id}/stats", response_model=QueueStats)
async def get_stats(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    client_id: str,
) -> QueueStats:
    """Queue aggregates for a client."""
    return await coordinator.get_stats(client_id)


@router.post("/{client_id}/boosts", response_model=BoostResult)
async def apply_boosts(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    client_id: str,
) -> BoostResult:
    """Run one age-based priority boost pass for a client."""
    result = await coordinator.apply_priority_boosts(client_id)
    logger.info(f"Boost pass for client {client_id}: {result.boosted_count} items boosted")
    return result
