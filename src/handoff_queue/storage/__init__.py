"""Storage contract for the handoff queue."""

from handoff_queue.storage.port import StoragePort

__all__ = ["StoragePort"]
