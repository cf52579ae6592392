"""
Health endpoint and cross-cutting HTTP behaviour: the response envelope for
unknown routes and the diagnostic headers added by the request middleware.
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert "status" in data["database"]
    assert data["cache"]["available"] is False


@pytest.mark.asyncio
async def test_ping(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/ping")
    assert resp.status_code == 200
    assert resp.json()["message"] == "pong"
    assert resp.json()["data"] == {"status": "ok"}


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/nothing-here")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_response_diagnostic_headers(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/ping")
    assert resp.headers["x-request-id"]
    assert float(resp.headers["x-response-time-ms"]) >= 0
    assert resp.headers["x-query-count"] == "0"


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/ping", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["x-request-id"] == "abc-123"


@pytest.mark.asyncio
async def test_query_count_header_counts_sql(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    # One COUNT(*) plus one page SELECT.
    assert int(resp.headers["x-query-count"]) == 2
