"""Tests for /v1/admin endpoints."""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("POST", "/v1/admin/cache/clear"),
        ("GET", "/v1/admin/cache/stats"),
        ("GET", "/v1/admin/upstream/health"),
        ("POST", "/v1/admin/prefetch"),
    ],
)
async def test_admin_requires_key(client: AsyncClient, method: str, path: str):
    response = await client.request(method, path)
    assert response.status_code == 403

    response = await client.request(method, path, headers={"X-Admin-Key": "wrong"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_clear_whole_route_cache(client: AsyncClient, app: FastAPI, admin_headers: dict[str, str]):
    await client.get("/v1/analytics/dashboard")
    assert app.state.upstream.calls["records"] == 1

    response = await client.post("/v1/admin/cache/clear", headers=admin_headers)
    assert response.status_code == 200
    assert "dashboard_stats" in response.json()["cleared_keys"]

    await client.get("/v1/analytics/dashboard")
    assert app.state.upstream.calls["records"] == 2


@pytest.mark.asyncio
async def test_clear_selected_keys(client: AsyncClient, app: FastAPI, admin_headers: dict[str, str]):
    await client.get("/v1/analytics/dashboard")
    await client.get("/v1/analytics/source-insights")

    response = await client.post(
        "/v1/admin/cache/clear",
        json={"keys": ["dashboard_stats", "missing"]},
        headers=admin_headers,
    )
    assert response.json()["cleared_keys"] == ["dashboard_stats"]
    assert "dashboard_stats" not in app.state.route_cache
    assert "source_insights" in app.state.route_cache


@pytest.mark.asyncio
async def test_clear_includes_source_cache(client: AsyncClient, app: FastAPI, admin_headers: dict[str, str]):
    app.state.source_cache.set("product_records", [])
    response = await client.post(
        "/v1/admin/cache/clear",
        json={"include_source": True},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert "source cache" in response.json()["message"]
    assert len(app.state.source_cache) == 0


@pytest.mark.asyncio
async def test_cache_stats(client: AsyncClient, admin_headers: dict[str, str]):
    await client.get("/v1/analytics/dashboard")
    response = await client.get("/v1/admin/cache/stats", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["route"]["ttl_seconds"] == 300
    assert data["source"]["ttl_seconds"] == 120
    assert data["route"]["keys"] == ["dashboard_stats"]
    assert data["route"]["entries"][0]["fresh"] is True


@pytest.mark.asyncio
async def test_upstream_health(client: AsyncClient, admin_headers: dict[str, str]):
    response = await client.get("/v1/admin/upstream/health", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["product_api"] == {"status": "healthy", "response_time_ms": 12, "error": None}
    assert data["qr_api"]["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_prefetch(client: AsyncClient, app: FastAPI, admin_headers: dict[str, str]):
    response = await client.post("/v1/admin/prefetch", headers=admin_headers)
    assert response.json() == {"ok": True}
    assert app.state.upstream.calls["prefetch"] == 1
