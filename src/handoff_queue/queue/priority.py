"""Queue ordering and age-based priority promotion.

Items are served urgent first, then high, medium, low; within a level the
oldest item goes first. A pending item that waits longer than its level's
threshold is promoted one level per boost pass:

- high   -> urgent after 45 minutes
- medium -> high   after 30 minutes
- low    -> medium after 60 minutes
- urgent is never promoted
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from handoff_queue.config import Settings
from handoff_queue.domain import Priority, QueueItem


def queue_sort_key(item: QueueItem) -> tuple[int, datetime]:
    """Sort key giving the service order of an item."""
    return (item.priority.rank, item.created_at)


def sort_queue_items(items: Iterable[QueueItem]) -> list[QueueItem]:
    """Return items in service order regardless of the order storage produced."""
    return sorted(items, key=queue_sort_key)


@dataclass(frozen=True)
class BoostThresholds:
    """Minutes an item may wait at each level before promotion."""

    high_minutes: float = 45
    medium_minutes: float = 30
    low_minutes: float = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "BoostThresholds":
        return cls(
            high_minutes=settings.boost_high_minutes,
            medium_minutes=settings.boost_medium_minutes,
            low_minutes=settings.boost_low_minutes,
        )

    def threshold_for(self, priority: Priority) -> float | None:
        """Threshold for a level, or None when the level is never promoted."""
        return {
            Priority.HIGH: self.high_minutes,
            Priority.MEDIUM: self.medium_minutes,
            Priority.LOW: self.low_minutes,
            Priority.URGENT: None,
        }[priority]


def boost_target(
    item: QueueItem,
    now: datetime,
    thresholds: BoostThresholds | None = None,
) -> Priority | None:
    """The level an item should be promoted to, or None to leave it alone.

    The age must strictly exceed the threshold, and promotion never skips
    a level even when the item is old enough for several.
    """
    threshold = (thresholds or BoostThresholds()).threshold_for(item.priority)
    if threshold is None:
        return None
    if item.age_minutes(now) <= threshold:
        return None
    return item.priority.next_level()
