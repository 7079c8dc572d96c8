"""Tests for health check endpoints."""

import pytest
from httpx import AsyncClient

from trackerbase.core.config import settings


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test the basic health check endpoint."""
    response = await client.get(f"{settings.api_v1_prefix}/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["environment"] == settings.environment
    assert data["version"] == settings.app_version


@pytest.mark.asyncio
async def test_liveness_check(client: AsyncClient):
    """Test the liveness endpoint."""
    response = await client.get(f"{settings.api_v1_prefix}/live")

    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    """Test the application info endpoint."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == settings.app_name
    assert data["version"] == settings.app_version
