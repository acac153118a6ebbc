"""Tests for the health endpoint, request-id propagation and rate-limit keys."""
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient, ASGITransport

from app.core.limiter import actor_or_remote_address
from app.core.security import create_access_token
from app.main import app


@pytest.mark.asyncio
async def test_health_returns_ok():
    """GET /health should return HTTP 200 with status ok."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_request_id_is_minted_when_absent():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert len(response.headers["X-Request-ID"]) == 32


@pytest.mark.asyncio
async def test_request_id_is_echoed():
    """A caller-supplied X-Request-ID comes back unchanged."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


def test_rate_limit_key_prefers_token_subject():
    request = MagicMock()
    request.headers = {"Authorization": f"Bearer {create_access_token('Frank Foreman', 'Foreman')}"}
    assert actor_or_remote_address(request) == "actor:Frank Foreman"

    request.headers = {"Authorization": "Bearer not-a-jwt"}
    request.client.host = "10.0.0.7"
    assert actor_or_remote_address(request) == "10.0.0.7"
