"""Domain models for the handoff queue."""

from handoff_queue.domain.enums import ACTIVE_STATUSES, Priority, QueueStatus
from handoff_queue.domain.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    ItemNotFoundError,
    NoOperatorsAvailableError,
    NotAssignedError,
    QueueError,
)
from handoff_queue.domain.models import (
    BatchResult,
    BoostResult,
    ClaimResult,
    Metadata,
    Operator,
    OperatorWorkload,
    QueueFilter,
    QueueItem,
    QueuePage,
    QueueStats,
    QueueStatsSnapshot,
    RedistributionResult,
    merge_metadata,
    utc_now,
)

__all__ = [
    "ACTIVE_STATUSES",
    "Priority",
    "QueueStatus",
    "QueueError",
    "ItemNotFoundError",
    "NotAssignedError",
    "NoOperatorsAvailableError",
    "InvalidTransitionError",
    "ConcurrentModificationError",
    "BatchResult",
    "BoostResult",
    "ClaimResult",
    "Metadata",
    "Operator",
    "OperatorWorkload",
    "QueueFilter",
    "QueueItem",
    "QueuePage",
    "QueueStats",
    "QueueStatsSnapshot",
    "RedistributionResult",
    "merge_metadata",
    "utc_now",
]
