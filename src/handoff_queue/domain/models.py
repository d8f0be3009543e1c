"""Core domain models for the handoff queue.

A handoff item is a unit of escalated support work waiting for a human
operator. Items are created upstream as ``pending``, move between
``pending`` and ``assigned`` through the queue coordinator, and leave the
queue when a collaborator marks them ``resolved``.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from handoff_queue.domain.enums import Priority, QueueStatus

# Metadata is an open mapping. The queue only ever merges into it.
Metadata = dict[str, Any]

# Recognised metadata keys, grouped by the operation that writes them
META_LAST_RELEASE_REASON = "lastReleaseReason"
META_LAST_RELEASED_BY = "lastReleasedBy"
META_LAST_RELEASED_AT = "lastReleasedAt"

META_REDISTRIBUTED_FROM = "redistributedFrom"
META_REDISTRIBUTED_AT = "redistributedAt"

META_BOOSTED_AT = "boostedAt"
META_PREVIOUS_PRIORITY = "previousPriority"
META_BOOST_REASON = "boostReason"
BOOST_REASON_AGE = "age_threshold"


def generate_item_id() -> str:
    """Generate a handoff item ID (ho-xxxxxxxx)."""
    return f"ho-{uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def merge_metadata(existing: Metadata | None, updates: Metadata) -> Metadata:
    """Return a new mapping with ``updates`` layered over ``existing``."""
    return {**(existing or {}), **updates}


class QueueItem(BaseModel):
    """An escalated conversation waiting for (or held by) an operator."""

    id: str = Field(default_factory=generate_item_id)
    client_id: str
    thread_id: str
    priority: Priority = Priority.MEDIUM
    status: QueueStatus = QueueStatus.PENDING
    reason: str = ""

    # Set together, and only while status is ASSIGNED
    assigned_to: str | None = None
    assigned_at: datetime | None = None

    metadata: Metadata = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    # Optimistic concurrency token, bumped by storage on every write
    version: int = 1

    def age_minutes(self, now: datetime) -> float:
        """Minutes elapsed since the item was created."""
        return (now - self.created_at).total_seconds() / 60


class Operator(BaseModel):
    """A human operator registered to serve a client."""

    id: str = Field(default_factory=lambda: f"op-{uuid4().hex[:8]}")
    client_id: str
    name: str
    max_capacity: int | None = None
    available: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class OperatorWorkload(BaseModel):
    """Derived load figures for one operator, fetched fresh per operation."""

    operator_id: str
    current_load: int = 0
    resolved_today: int = 0
    max_capacity: int | None = None

    @property
    def assigned_count(self) -> int:
        return self.current_load

    def has_capacity(self) -> bool:
        """True when the operator may take another item."""
        return self.max_capacity is None or self.current_load < self.max_capacity


class QueueFilter(BaseModel):
    """Optional restrictions and pagination for queue listings."""

    priorities: list[Priority] | None = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)


class QueuePage(BaseModel):
    """One page of queue items plus the total matching count."""

    items: list[QueueItem] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False


class ClaimResult(BaseModel):
    """Outcome of a claim attempt.

    A failed claim is an expected outcome (empty queue, lost race, item held
    by someone else), so it is reported here rather than raised.
    """

    success: bool
    item: QueueItem | None = None
    error: str | None = None


class QueueStatsSnapshot(BaseModel):
    """Aggregate figures as computed by storage."""

    total: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    avg_wait_time_ms: float = 0.0
    oldest_item_age_ms: float | None = None


class QueueStats(QueueStatsSnapshot):
    """Storage aggregates plus the derived wait time in minutes."""

    avg_wait_time_minutes: float = 0.0


class BatchResult(BaseModel):
    """Outcome of a multi-item operation.

    Counts reflect completed updates only. When the batch stops early the
    failing item and the error message are recorded.
    """

    interrupted_item_id: str | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.error is None


class RedistributionResult(BatchResult):
    """Outcome of handing a departing operator's items back to the queue."""

    redistributed_count: int = 0


class BoostResult(BatchResult):
    """Outcome of one age-based priority boost pass."""

    boosted_count: int = 0
