"""API integration tests."""

import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import add_item
from handoff_queue.api.app import create_app
from handoff_queue.db import SQLiteQueueStore
from handoff_queue.db.connection import Database
from handoff_queue.domain import Priority, utc_now


@pytest.fixture
async def app_with_db() -> AsyncGenerator[tuple, None]:
    """Create an app with a temporary database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        db = Database(db_path)
        await db.connect()

        app = create_app()
        app.state.db = db

        yield app, db

        await db.disconnect()


@pytest.fixture
async def client(app_with_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    app, _ = app_with_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api_store(app_with_db) -> SQLiteQueueStore:
    _, db = app_with_db
    return SQLiteQueueStore(db)


async def create_item(client: AsyncClient, **overrides) -> dict:
    body = {"client_id": "acme", "thread_id": "thread-1", "priority": "medium"}
    body.update(overrides)
    response = await client.post("/api/queue/items", json=body)
    assert response.status_code == 201
    return response.json()


async def register(client: AsyncClient, operator_id: str, **overrides) -> dict:
    body = {"id": operator_id, "client_id": "acme", "name": operator_id.title()}
    body.update(overrides)
    response = await client.post("/api/operators", json=body)
    assert response.status_code == 201
    return response.json()


class TestHealthEndpoint:
    """Tests for health endpoint."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"


class TestItemsAPI:
    """Tests for item intake, claiming and release."""

    async def test_create_and_get_item(self, client: AsyncClient):
        created = await create_item(client, priority="high", reason="chargeback threat")

        assert created["id"].startswith("ho-")
        assert created["status"] == "pending"
        assert created["priority"] == "high"

        response = await client.get(f"/api/queue/items/{created['id']}")
        assert response.status_code == 200
        assert response.json()["reason"] == "chargeback threat"

    async def test_create_rejects_unknown_priority(self, client: AsyncClient):
        response = await client.post(
            "/api/queue/items",
            json={"client_id": "acme", "thread_id": "t-1", "priority": "critical"},
        )
        assert response.status_code == 422

    async def test_get_item_not_found(self, client: AsyncClient):
        response = await client.get("/api/queue/items/ho-missing")
        assert response.status_code == 404

    async def test_claim_specific(self, client: AsyncClient):
        item = await create_item(client)

        response = await client.post(
            f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["item"]["assigned_to"] == "op-1"
        assert data["item"]["status"] == "assigned"

    async def test_claim_conflict_reported_in_body(self, client: AsyncClient):
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.post(
            f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-2"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert "Already assigned" in data["error"]

    async def test_release(self, client: AsyncClient):
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.post(
            f"/api/queue/items/{item['id']}/release",
            json={"operator_id": "op-1", "reason": "wrong language"},
        )
        assert response.status_code == 204

        fetched = (await client.get(f"/api/queue/items/{item['id']}")).json()
        assert fetched["status"] == "pending"
        assert fetched["metadata"]["lastReleaseReason"] == "wrong language"

    async def test_release_by_non_holder_forbidden(self, client: AsyncClient):
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.post(
            f"/api/queue/items/{item['id']}/release",
            json={"operator_id": "op-2", "reason": "not mine"},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Not assigned to you"

    async def test_release_missing_item(self, client: AsyncClient):
        response = await client.post(
            "/api/queue/items/ho-missing/release", json={"operator_id": "op-1"}
        )
        assert response.status_code == 404

    async def test_auto_assign(self, client: AsyncClient):
        await register(client, "op-1", max_capacity=1)
        await register(client, "op-2")
        busy = await create_item(client, thread_id="t-busy")
        await client.post(f"/api/queue/items/{busy['id']}/claim", json={"operator_id": "op-1"})
        item = await create_item(client, thread_id="t-new")

        response = await client.post(f"/api/queue/items/{item['id']}/auto-assign")

        assert response.status_code == 200
        assert response.json() == {"assigned_to": "op-2"}

    async def test_auto_assign_without_operators(self, client: AsyncClient):
        item = await create_item(client)

        response = await client.post(f"/api/queue/items/{item['id']}/auto-assign")

        assert response.status_code == 503
        assert response.json()["detail"] == "No operators available"

    async def test_auto_assign_claimed_item_conflicts(self, client: AsyncClient):
        await register(client, "op-1")
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.post(f"/api/queue/items/{item['id']}/auto-assign")
        assert response.status_code == 409

    async def test_resolve_removes_from_queue(self, client: AsyncClient):
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.post(f"/api/queue/items/{item['id']}/resolve", json={})

        assert response.status_code == 200
        assert response.json()["status"] == "resolved"
        assert response.json()["resolved_by"] == "op-1"

        queue = (await client.get("/api/queue/acme")).json()
        assert queue["total"] == 0

    async def test_resolve_twice_conflicts(self, client: AsyncClient):
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})
        await client.post(f"/api/queue/items/{item['id']}/resolve", json={})

        response = await client.post(f"/api/queue/items/{item['id']}/resolve", json={})

        assert response.status_code == 409
        fetched = (await client.get(f"/api/queue/items/{item['id']}")).json()
        assert fetched["resolved_by"] == "op-1"

    async def test_list_without_client_is_not_a_queue(self, client: AsyncClient):
        response = await client.get("/api/queue/items")
        assert response.status_code == 404


class TestQueueAPI:
    """Tests for per-client queue endpoints."""

    async def test_list_queue_in_service_order(self, client: AsyncClient):
        await create_item(client, thread_id="t-low", priority="low")
        await create_item(client, thread_id="t-urgent", priority="urgent")
        await create_item(client, thread_id="t-high", priority="high")

        response = await client.get("/api/queue/acme")

        assert response.status_code == 200
        data = response.json()
        assert [i["priority"] for i in data["items"]] == ["urgent", "high", "low"]
        assert data["total"] == 3
        assert data["has_more"] is False

    async def test_list_queue_filter_and_paging(self, client: AsyncClient):
        for n in range(3):
            await create_item(client, thread_id=f"t-high-{n}", priority="high")
        await create_item(client, thread_id="t-low", priority="low")

        response = await client.get(
            "/api/queue/acme", params={"priority": ["high"], "limit": 2, "offset": 0}
        )

        data = response.json()
        assert len(data["items"]) == 2
        assert data["total"] == 3
        assert data["has_more"] is True

    async def test_list_queue_rejects_bad_limit(self, client: AsyncClient):
        response = await client.get("/api/queue/acme", params={"limit": 0})
        assert response.status_code == 422

    async def test_claim_next(self, client: AsyncClient):
        await create_item(client, thread_id="t-medium")
        urgent = await create_item(client, thread_id="t-urgent", priority="urgent")

        response = await client.post("/api/queue/acme/claim-next", json={"operator_id": "op-1"})

        data = response.json()
        assert data["success"] is True
        assert data["item"]["id"] == urgent["id"]

    async def test_claim_next_empty(self, client: AsyncClient):
        response = await client.post("/api/queue/acme/claim-next", json={"operator_id": "op-1"})

        assert response.status_code == 200
        assert response.json() == {"success": False, "item": None, "error": None}

    async def test_stats(self, client: AsyncClient):
        await create_item(client, thread_id="t-1", priority="urgent")
        await create_item(client, thread_id="t-2")

        response = await client.get("/api/queue/acme/stats")

        data = response.json()
        assert data["total"] == 2
        assert data["by_priority"]["urgent"] == 1
        assert data["by_status"] == {"pending": 2, "assigned": 0}
        assert "avg_wait_time_minutes" in data

    async def test_boosts(self, client: AsyncClient, api_store: SQLiteQueueStore):
        old = await add_item(api_store, priority=Priority.MEDIUM, age_minutes=35, now=utc_now())
        await add_item(api_store, priority=Priority.MEDIUM, age_minutes=5, now=utc_now())

        response = await client.post("/api/queue/acme/boosts")

        assert response.status_code == 200
        assert response.json()["boosted_count"] == 1
        fetched = (await client.get(f"/api/queue/items/{old.id}")).json()
        assert fetched["priority"] == "high"
        assert fetched["metadata"]["previousPriority"] == "medium"


class TestOperatorsAPI:
    """Tests for operator endpoints."""

    async def test_register_and_list(self, client: AsyncClient):
        await register(client, "op-1", max_capacity=5)
        await register(client, "op-2")

        response = await client.get("/api/operators/acme")

        assert [o["id"] for o in response.json()] == ["op-1", "op-2"]

    async def test_register_rejects_negative_capacity(self, client: AsyncClient):
        response = await client.post(
            "/api/operators",
            json={"id": "op-1", "client_id": "acme", "name": "One", "max_capacity": -1},
        )
        assert response.status_code == 422

    async def test_workload(self, client: AsyncClient):
        await register(client, "op-1", max_capacity=3)
        item = await create_item(client)
        await client.post(f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"})

        response = await client.get("/api/operators/acme/workload")

        [workload] = response.json()
        assert workload["operator_id"] == "op-1"
        assert workload["current_load"] == 1
        assert workload["max_capacity"] == 3

    async def test_availability(self, client: AsyncClient):
        await register(client, "op-1")

        response = await client.post(
            "/api/operators/op-1/availability", json={"available": False}
        )

        assert response.status_code == 200
        assert response.json()["registrations"] == 1
        listed = (await client.get("/api/operators/acme")).json()
        assert listed[0]["available"] is False

    async def test_availability_unknown_operator(self, client: AsyncClient):
        response = await client.post(
            "/api/operators/op-ghost/availability", json={"available": False}
        )
        assert response.status_code == 404

    async def test_redistribute(self, client: AsyncClient):
        first = await create_item(client, thread_id="t-1")
        second = await create_item(client, thread_id="t-2", client_id="globex")
        for item in (first, second):
            await client.post(
                f"/api/queue/items/{item['id']}/claim", json={"operator_id": "op-1"}
            )

        response = await client.post("/api/operators/op-1/redistribute")

        data = response.json()
        assert data["redistributed_count"] == 2
        assert data["interrupted_item_id"] is None
        fetched = (await client.get(f"/api/queue/items/{second['id']}")).json()
        assert fetched["status"] == "pending"
        assert fetched["metadata"]["redistributedFrom"] == "op-1"

