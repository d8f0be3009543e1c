"""Enumerations for domain models."""

from enum import Enum


class Priority(str, Enum):
    """Handoff priority levels (urgent is served first)."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Position in the service order; lower ranks are served first."""
        return PRIORITY_RANK[self]

    def next_level(self) -> "Priority | None":
        """The level one step up, or None for urgent."""
        return PRIORITY_PROMOTION[self]


PRIORITY_RANK: dict[Priority, int] = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

PRIORITY_PROMOTION: dict[Priority, Priority | None] = {
    Priority.LOW: Priority.MEDIUM,
    Priority.MEDIUM: Priority.HIGH,
    Priority.HIGH: Priority.URGENT,
    Priority.URGENT: None,
}


class QueueStatus(str, Enum):
    """Handoff item lifecycle states."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    RESOLVED = "resolved"  # Entered only by the resolving collaborator


ACTIVE_STATUSES = (QueueStatus.PENDING, QueueStatus.ASSIGNED)
