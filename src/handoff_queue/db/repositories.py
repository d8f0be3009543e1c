"""Repository classes for database access."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from handoff_queue.db.connection import Database
from handoff_queue.domain import (
    ACTIVE_STATUSES,
    ConcurrentModificationError,
    InvalidTransitionError,
    ItemNotFoundError,
    Operator,
    OperatorWorkload,
    Priority,
    QueueItem,
    QueuePage,
    QueueStatsSnapshot,
    QueueStatus,
    utc_now,
)

# Service order: urgent first, low last
PRIORITY_ORDER_SQL = (
    "CASE priority WHEN 'urgent' THEN 0 WHEN 'high' THEN 1 "
    "WHEN 'medium' THEN 2 ELSE 3 END"
)

# Columns a conditional update may touch; id, client_id, thread_id and
# created_at are immutable and version/updated_at are maintained here.
UPDATABLE_COLUMNS = {
    "priority",
    "status",
    "reason",
    "assigned_to",
    "assigned_at",
    "metadata",
    "resolved_at",
    "resolved_by",
}


def to_db_timestamp(value: datetime | None) -> str | None:
    """Fixed-width UTC ISO timestamp, so text ordering matches time ordering."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


def _to_db_value(column: str, value: Any) -> Any:
    if column == "metadata":
        return json.dumps(value or {})
    if column in ("priority", "status") and value is not None:
        return value.value if hasattr(value, "value") else str(value)
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    return value


class QueueItemRepository:
    """Repository for handoff queue items."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, item: QueueItem) -> QueueItem:
        """Insert a new item exactly as given."""
        await self.db.execute(
            """
            INSERT INTO queue_items (
                id, client_id, thread_id, priority, status, reason, assigned_to,
                assigned_at, metadata, created_at, updated_at, resolved_at, resolved_by, version
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                item.client_id,
                item.thread_id,
                item.priority.value,
                item.status.value,
                item.reason,
                item.assigned_to,
                to_db_timestamp(item.assigned_at),
                json.dumps(item.metadata),
                to_db_timestamp(item.created_at),
                to_db_timestamp(item.updated_at),
                to_db_timestamp(item.resolved_at),
                item.resolved_by,
                item.version,
            ),
        )
        await self.db.commit()
        return item

    async def get(self, item_id: str) -> QueueItem | None:
        """Get an item by ID."""
        row = await self.db.fetchone("SELECT * FROM queue_items WHERE id = ?", (item_id,))
        if not row:
            return None
        return self._row_to_item(row)

    async def query(
        self,
        client_id: str | None,
        statuses: Sequence[QueueStatus] | None = None,
        priorities: Sequence[Priority] | None = None,
        assigned_to: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> QueuePage:
        """List items in service order with the total count of matches."""
        if client_id is None and assigned_to is None:
            raise ValueError("client_id is required unless listing one operator's items")

        conditions: list[str] = []
        params: list[Any] = []

        if client_id is not None:
            conditions.append("client_id = ?")
            params.append(client_id)
        if statuses:
            conditions.append(f"status IN ({_placeholders(statuses)})")
            params.extend(QueueStatus(s).value for s in statuses)
        if priorities:
            conditions.append(f"priority IN ({_placeholders(priorities)})")
            params.extend(Priority(p).value for p in priorities)
        if assigned_to is not None:
            conditions.append("assigned_to = ?")
            params.append(assigned_to)

        where = " AND ".join(conditions)

        count_row = await self.db.fetchone(
            f"SELECT COUNT(*) AS count FROM queue_items WHERE {where}", tuple(params)
        )
        total = count_row["count"] if count_row else 0

        query = f"""
            SELECT * FROM queue_items
            WHERE {where}
            ORDER BY {PRIORITY_ORDER_SQL}, created_at ASC, id ASC
        """
        offset = max(0, offset)
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([max(0, limit), offset])
        elif offset:
            query += " LIMIT -1 OFFSET ?"
            params.append(offset)

        rows = await self.db.fetchall(query, tuple(params))
        items = [self._row_to_item(row) for row in rows]
        return QueuePage(items=items, total=total, has_more=offset + len(items) < total)

    async def update_conditional(
        self,
        item_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> QueueItem:
        """Apply changes only if the stored version matches, bumping the version."""
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")

        columns = sorted(changes)
        assignments = [f"{column} = ?" for column in columns]
        assignments += ["version = version + 1", "updated_at = ?"]
        params: list[Any] = [_to_db_value(column, changes[column]) for column in columns]
        params += [to_db_timestamp(utc_now()), item_id, expected_version]

        cursor = await self.db.execute(
            f"UPDATE queue_items SET {', '.join(assignments)} WHERE id = ? AND version = ?",
            tuple(params),
        )
        await self.db.commit()

        if cursor.rowcount == 0:
            if await self.get(item_id) is None:
                raise ItemNotFoundError(item_id)
            raise ConcurrentModificationError(item_id, expected_version)

        updated = await self.get(item_id)
        if updated is None:
            raise ItemNotFoundError(item_id)
        return updated

    async def resolve(self, item_id: str, resolved_by: str | None = None) -> QueueItem:
        """Mark an item resolved on behalf of the resolving collaborator.

        Resolving twice raises ``InvalidTransitionError`` so the first
        resolver and timestamp are kept.
        """
        item = await self.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.status == QueueStatus.RESOLVED:
            raise InvalidTransitionError(item_id, item.status.value, "resolve")
        return await self.update_conditional(
            item_id,
            {
                "status": QueueStatus.RESOLVED,
                "assigned_to": None,
                "assigned_at": None,
                "resolved_at": utc_now(),
                "resolved_by": resolved_by or item.assigned_to,
            },
            expected_version=item.version,
        )

    async def stats(self, client_id: str, now: datetime | None = None) -> QueueStatsSnapshot:
        """Aggregate counts over active items and wait times over pending ones."""
        now = now or utc_now()
        active = [s.value for s in ACTIVE_STATUSES]
        rows = await self.db.fetchall(
            f"""
            SELECT priority, status, created_at FROM queue_items
            WHERE client_id = ? AND status IN ({_placeholders(active)})
            """,
            (client_id, *active),
        )

        by_priority = {p.value: 0 for p in Priority}
        by_status = {s: 0 for s in active}
        waits_ms: list[float] = []

        for row in rows:
            by_priority[row["priority"]] += 1
            by_status[row["status"]] += 1
            if row["status"] == QueueStatus.PENDING.value:
                created_at = from_db_timestamp(row["created_at"])
                waits_ms.append((now - created_at).total_seconds() * 1000)

        return QueueStatsSnapshot(
            total=len(rows),
            by_priority=by_priority,
            by_status=by_status,
            avg_wait_time_ms=sum(waits_ms) / len(waits_ms) if waits_ms else 0.0,
            oldest_item_age_ms=max(waits_ms) if waits_ms else None,
        )

    async def clients_with_pending(self) -> list[str]:
        """Client IDs that currently have pending items."""
        rows = await self.db.fetchall(
            "SELECT DISTINCT client_id FROM queue_items WHERE status = ? ORDER BY client_id",
            (QueueStatus.PENDING.value,),
        )
        return [row["client_id"] for row in rows]

    def _row_to_item(self, row: Any) -> QueueItem:
        """Convert a database row to a QueueItem."""
        return QueueItem(
            id=row["id"],
            client_id=row["client_id"],
            thread_id=row["thread_id"],
            priority=Priority(row["priority"]),
            status=QueueStatus(row["status"]),
            reason=row["reason"],
            assigned_to=row["assigned_to"],
            assigned_at=from_db_timestamp(row["assigned_at"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
            resolved_at=from_db_timestamp(row["resolved_at"]),
            resolved_by=row["resolved_by"],
            version=row["version"],
        )


class OperatorRepository:
    """Repository for operator registrations and derived workload."""

    def __init__(self, db: Database):
        self.db = db

    async def register(self, operator: Operator) -> Operator:
        """Register an operator for a client, updating an existing registration."""
        await self.db.execute(
            """
            INSERT INTO operators (id, client_id, name, max_capacity, available, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (id, client_id) DO UPDATE SET
                name = excluded.name,
                max_capacity = excluded.max_capacity,
                available = excluded.available
            """,
            (
                operator.id,
                operator.client_id,
                operator.name,
                operator.max_capacity,
                1 if operator.available else 0,
                to_db_timestamp(operator.created_at),
            ),
        )
        await self.db.commit()
        return operator

    async def get(self, operator_id: str, client_id: str) -> Operator | None:
        row = await self.db.fetchone(
            "SELECT * FROM operators WHERE id = ? AND client_id = ?",
            (operator_id, client_id),
        )
        if not row:
            return None
        return self._row_to_operator(row)

    async def list(self, client_id: str) -> list[Operator]:
        """List operators registered for a client in registration order."""
        rows = await self.db.fetchall(
            "SELECT * FROM operators WHERE client_id = ? ORDER BY created_at, rowid",
            (client_id,),
        )
        return [self._row_to_operator(row) for row in rows]

    async def set_availability(
        self,
        operator_id: str,
        available: bool,
        client_id: str | None = None,
    ) -> int:
        """Toggle availability for one client, or for every client when None."""
        query = "UPDATE operators SET available = ? WHERE id = ?"
        params: list[Any] = [1 if available else 0, operator_id]
        if client_id is not None:
            query += " AND client_id = ?"
            params.append(client_id)

        cursor = await self.db.execute(query, tuple(params))
        await self.db.commit()
        return cursor.rowcount

    async def delete(self, operator_id: str, client_id: str) -> bool:
        cursor = await self.db.execute(
            "DELETE FROM operators WHERE id = ? AND client_id = ?",
            (operator_id, client_id),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def workload(
        self,
        client_id: str,
        available_only: bool = False,
        now: datetime | None = None,
    ) -> list[OperatorWorkload]:
        """Current load and resolutions today for the client's operators.

        Rows come back in registration order, which callers rely on as a
        stable tie-break.
        """
        now = now or utc_now()
        start_of_day = now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)

        query = """
            SELECT
                o.id AS operator_id,
                o.max_capacity AS max_capacity,
                (
                    SELECT COUNT(*) FROM queue_items q
                    WHERE q.client_id = o.client_id
                      AND q.assigned_to = o.id
                      AND q.status = 'assigned'
                ) AS current_load,
                (
                    SELECT COUNT(*) FROM queue_items q
                    WHERE q.client_id = o.client_id
                      AND q.resolved_by = o.id
                      AND q.status = 'resolved'
                      AND q.resolved_at >= ?
                ) AS resolved_today
            FROM operators o
            WHERE o.client_id = ?
        """
        if available_only:
            query += " AND o.available = 1"
        query += " ORDER BY o.created_at, o.rowid"

        rows = await self.db.fetchall(query, (to_db_timestamp(start_of_day), client_id))
        return [
            OperatorWorkload(
                operator_id=row["operator_id"],
                current_load=row["current_load"],
                resolved_today=row["resolved_today"],
                max_capacity=row["max_capacity"],
            )
            for row in rows
        ]

    def _row_to_operator(self, row: Any) -> Operator:
        return Operator(
            id=row["id"],
            client_id=row["client_id"],
            name=row["name"],
            max_capacity=row["max_capacity"],
            available=bool(row["available"]),
            created_at=from_db_timestamp(row["created_at"]),
        )
