"""API route modules."""

from handoff_queue.api.routes import operators, queue, ws

__all__ = ["operators", "queue", "ws"]
