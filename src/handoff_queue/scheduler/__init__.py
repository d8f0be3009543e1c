"""Scheduling helpers that drive the coordinator periodically."""

from handoff_queue.scheduler.boost import BoostScheduler

__all__ = ["BoostScheduler"]
