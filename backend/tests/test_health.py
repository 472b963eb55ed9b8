"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestHealthEndpoints:
    """Test suite for health check functionality."""

    async def test_health_check_returns_status(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["auth_provider"] == "development"
        assert "version" in data

    async def test_health_reports_active_provider(self, async_client: AsyncClient, mode_holder):
        mode_holder.value = "auth0"
        response = await async_client.get("/health")
        assert response.json()["auth_provider"] == "auth0"

    async def test_health_database_down(self, async_client: AsyncClient):
        with patch(
            "identity_service.api.health.check_db_connection",
            AsyncMock(return_value=False),
        ):
            response = await async_client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["database"] == "disconnected"
