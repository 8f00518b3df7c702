"""
Tests for health check and root endpoints.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.infrastructure.database import Database


@pytest.mark.asyncio
async def test_health_endpoint(client):
    """Test the health check endpoint returns expected response."""
    response = await client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert data["version"] == "0.1.0"
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_health_without_database():
    """Health still answers when no database is configured; data endpoints answer 503."""
    app.state.database = Database(None)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        health = await client.get("/api/health")
        cities = await client.get("/api/cities/popular")

    assert health.status_code == 200
    assert health.json()["database"] == "not_configured"
    assert cities.status_code == 503
    assert cities.json()["error"] == "DATABASE_NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Test the root endpoint returns API information."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Globetrotter API"
    assert data["status"] == "running"
    assert "version" in data


@pytest.mark.asyncio
async def test_unknown_route_uses_error_body(client):
    response = await client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"
