"""Queue ordering, claiming and assignment."""

from handoff_queue.queue.coordinator import QueueCoordinator
from handoff_queue.queue.priority import BoostThresholds

__all__ = ["QueueCoordinator", "BoostThresholds"]
