"""Database module for the handoff queue."""

from handoff_queue.db.connection import Database, close_database, get_database
from handoff_queue.db.repositories import OperatorRepository, QueueItemRepository
from handoff_queue.db.store import SQLiteQueueStore

__all__ = [
    "Database",
    "close_database",
    "get_database",
    "OperatorRepository",
    "QueueItemRepository",
    "SQLiteQueueStore",
]
