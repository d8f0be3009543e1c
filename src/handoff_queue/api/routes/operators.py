"""Operator API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from handoff_queue.api.deps import get_coordinator, get_store
from handoff_queue.db import SQLiteQueueStore
from handoff_queue.domain import Operator, OperatorWorkload, RedistributionResult
from handoff_queue.queue import QueueCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()


class OperatorCreate(BaseModel):
    """Request body for registering an operator with a client."""

    id: str
    client_id: str
    name: str
    max_capacity: int | None = Field(default=None, ge=0)
    available: bool = True


class AvailabilityUpdate(BaseModel):
    """Request body for toggling availability (all clients when client_id is omitted)."""

    available: bool
    client_id: str | None = None


@router.post("", response_model=Operator, status_code=201)
async def register_operator(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    body: OperatorCreate,
) -> Operator:
    """Register an operator, or update an existing registration."""
    operator = Operator(**body.model_dump())
    await store.operators.register(operator)
    logger.info(f"Registered operator {operator.id} for client {operator.client_id}")
    return operator


@router.get("/{client_id}", response_model=list[Operator])
async def list_operators(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    client_id: str,
) -> list[Operator]:
    """List operators registered for a client."""
    return await store.operators.list(client_id)


@router.get("/{client_id}/workload", response_model=list[OperatorWorkload])
async def get_workload(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    client_id: str,
) -> list[OperatorWorkload]:
    """Current load of every operator serving a client."""
    return await coordinator.get_operator_workload(client_id)


@router.post("/{operator_id}/availability")
async def set_availability(
    store: Annotated[SQLiteQueueStore, Depends(get_store)],
    operator_id: str,
    body: AvailabilityUpdate,
) -> dict:
    """Mark an operator available or unavailable for new work."""
    updated = await store.operators.set_availability(
        operator_id, body.available, client_id=body.client_id
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Operator not found")
    logger.info(f"Operator {operator_id} availability set to {body.available} ({updated} registrations)")
    return {"operator_id": operator_id, "available": body.available, "registrations": updated}


@router.post("/{operator_id}/redistribute", response_model=RedistributionResult)
async def redistribute(
    coordinator: Annotated[QueueCoordinator, Depends(get_coordinator)],
    operator_id: str,
) -> RedistributionResult:
    """Return every item the operator holds, across all clients, to the queue."""
    result = await coordinator.redistribute_workload(operator_id)
    if not result.completed:
        logger.warning(f"Redistribution for {operator_id} incomplete: {result.error}")
    return result
