"""Tests for the approvals HTTP API.

The repository and rule book are swapped for in-memory versions through
dependency_overrides; the actor comes from an overridable dependency, so each
test chooses who is calling.

Tests cover intake, listing/filters, stats, single actions with each error
code, batch actions and the rule book endpoint.
"""
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from app.core.deps import get_current_actor, get_repository, get_rules
from app.core.security import create_access_token
from app.db.repository import InMemoryItemRepository
from app.main import app
from factories import FOREMAN, OPS_MANAGER, SUPERVISOR, site_rule_book


# ─── Shared fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def api_repo():
    return InMemoryItemRepository()


@pytest.fixture
def as_actor(api_repo):
    """Install overrides and return a setter for the calling actor."""
    current = {"actor": FOREMAN}
    rules = site_rule_book()

    async def _actor():
        return current["actor"]

    app.dependency_overrides[get_repository] = lambda: api_repo
    app.dependency_overrides[get_rules] = lambda: rules
    app.dependency_overrides[get_current_actor] = _actor

    def _set(actor):
        current["actor"] = actor

    yield _set
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _create(client, amount="75000", **extra):
    resp = await client.post("/api/v1/approvals", json={"amount": amount, "category": "materials", **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ─── Intake ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_routes_item_to_tier(as_actor):
    async with _client() as client:
        data = await _create(client, "75000", contractor_name="ABC Construction")

    assert data["tier"] == "Large"
    assert data["max_level"] == 3
    assert data["current_level"] == 1
    assert data["status"] == "pending"
    assert data["amount"] == "75000.00"
    assert data["priority"] == "high"
    assert data["submitted_by"] == FOREMAN.name
    assert data["can_act"] is True
    assert data["history"] == []
    assert data["reference"].startswith("APR-")


@pytest.mark.asyncio
async def test_create_rejects_negative_amount(as_actor):
    async with _client() as client:
        resp = await client.post("/api/v1/approvals", json={"amount": "-1", "category": "labor"})
    assert resp.status_code == 422


# ─── Actions ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_chain_over_http(as_actor):
    async with _client() as client:
        item = await _create(client, "75000")
        url = f"/api/v1/approvals/{item['id']}/actions"

        r1 = await client.post(url, json={"action": "approve"})
        as_actor(SUPERVISOR)
        r2 = await client.post(url, json={"action": "approve", "expected_version": 2})
        as_actor(OPS_MANAGER)
        r3 = await client.post(url, json={"action": "approve", "signature": "sig"})

    assert r1.json()["current_level"] == 2
    assert r2.json()["current_level"] == 3
    assert r3.status_code == 200
    body = r3.json()
    assert body["status"] == "approved"
    assert [h["action"] for h in body["history"]] == ["approved"] * 3
    assert body["history"][-1]["signature"] == "sig"
    assert body["can_act"] is False


@pytest.mark.asyncio
async def test_wrong_level_is_403(as_actor):
    async with _client() as client:
        item = await _create(client, "75000")
        as_actor(OPS_MANAGER)
        resp = await client.post(f"/api/v1/approvals/{item['id']}/actions", json={"action": "approve"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_closed_item_is_409(as_actor):
    async with _client() as client:
        item = await _create(client, "500")
        url = f"/api/v1/approvals/{item['id']}/actions"
        await client.post(url, json={"action": "reject", "comment": "duplicate"})
        resp = await client.post(url, json={"action": "approve"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_stale_version_is_412(as_actor):
    async with _client() as client:
        item = await _create(client, "500")
        url = f"/api/v1/approvals/{item['id']}/actions"
        await client.post(url, json={"action": "comment", "comment": "looking"})
        resp = await client.post(url, json={"action": "approve", "expected_version": 1})
    assert resp.status_code == 412
    assert resp.json()["code"] == "CONCURRENT_MODIFICATION"


@pytest.mark.asyncio
async def test_unknown_item_is_404(as_actor):
    async with _client() as client:
        resp = await client.get(f"/api/v1/approvals/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_unknown_action_is_422(as_actor):
    async with _client() as client:
        item = await _create(client, "500")
        resp = await client.post(f"/api/v1/approvals/{item['id']}/actions", json={"action": "delete"})
    assert resp.status_code == 422


# ─── List / stats ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_filters(as_actor):
    async with _client() as client:
        small = await _create(client, "500", contractor_name="Metro HVAC")
        large = await _create(client, "75000")
        await client.post(f"/api/v1/approvals/{small['id']}/actions", json={"action": "approve"})

        everything = await client.get("/api/v1/approvals")
        pending = await client.get("/api/v1/approvals", params={"status": "pending"})
        search = await client.get("/api/v1/approvals", params={"search": "hvac"})
        as_actor(SUPERVISOR)
        supervisor_queue = await client.get("/api/v1/approvals", params={"assigned_to_me": "true"})

    assert everything.json()["total"] == 2
    assert [i["id"] for i in pending.json()["items"]] == [large["id"]]
    assert [i["id"] for i in search.json()["items"]] == [small["id"]]
    assert supervisor_queue.json()["total"] == 0


@pytest.mark.asyncio
async def test_stats_endpoint(as_actor):
    async with _client() as client:
        small = await _create(client, "500")
        await _create(client, "75000", priority="urgent")
        await client.post(f"/api/v1/approvals/{small['id']}/actions", json={"action": "approve"})
        resp = await client.get("/api/v1/approvals/stats")

    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert data["count_by_status"]["approved"] == 1
    assert data["count_by_status"]["pending"] == 1
    assert data["total_open_value"] == "75000.00"
    assert data["urgent"] == 1
    assert data["my_queue"] == 1
    assert data["approval_rate"] == 50.0
    assert data["mean_time_to_decision_seconds"] is not None


# ─── Batch ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_batch_reports_per_item_outcomes(as_actor):
    async with _client() as client:
        a = await _create(client, "5000")
        b = await _create(client, "20000")
        c = await _create(client, "75000")
        resp = await client.post(
            "/api/v1/approvals/batch",
            json={"item_ids": [a["id"], b["id"], c["id"]], "action": "approve"},
        )

    assert resp.status_code == 200
    data = resp.json()
    assert data["succeeded"] == [a["id"], b["id"]]
    assert data["failed"] == [
        {"item_id": c["id"], "code": "BATCH_NOT_ALLOWED", "message": data["failed"][0]["message"]},
    ]


@pytest.mark.asyncio
async def test_batch_requires_ids(as_actor):
    async with _client() as client:
        resp = await client.post("/api/v1/approvals/batch", json={"item_ids": [], "action": "approve"})
    assert resp.status_code == 422


# ─── Rules / auth ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rule_book_endpoint(as_actor):
    async with _client() as client:
        resp = await client.get("/api/v1/rules")
    data = resp.json()
    assert data["version"] == "site-test-1"
    assert data["role_ladder"] == ["Foreman", "Site Supervisor", "Operations Manager"]
    assert [r["name"] for r in data["rules"]] == ["Small", "Medium", "Large"]
    assert data["rules"][-1]["max_amount"] is None


@pytest.mark.asyncio
async def test_missing_token_is_401(api_repo):
    app.dependency_overrides[get_repository] = lambda: api_repo
    try:
        async with _client() as client:
            resp = await client.get("/api/v1/approvals")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_identifies_actor(api_repo):
    app.dependency_overrides[get_repository] = lambda: api_repo
    app.dependency_overrides[get_rules] = site_rule_book
    token = create_access_token("Frank Foreman", "Foreman")
    try:
        async with _client() as client:
            resp = await client.post(
                "/api/v1/approvals",
                json={"amount": "100", "category": "labor"},
                headers={"Authorization": f"Bearer {token}"},
            )
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 201
    assert resp.json()["submitted_by"] == "Frank Foreman"
    assert resp.json()["can_act"] is True
