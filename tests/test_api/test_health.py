"""Tests for health check endpoints."""

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from revenue_engine.api.revenue import get_dispatcher
from revenue_engine.core.config import settings
from revenue_engine.main import app


class TestBasicHealthCheck:
    """Test basic health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check_success(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["app"] == settings.APP_NAME
        assert "version" in data


class TestDatabaseHealthCheck:
    """Test database health check endpoint."""

    @pytest.mark.asyncio
    async def test_db_health_check_success(self, test_client: AsyncClient) -> None:
        response = await test_client.get("/health/db")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}


class TestRedisHealthCheck:
    """Test Redis health check endpoint."""

    @pytest.mark.asyncio
    async def test_redis_health_check_success(self, test_client: AsyncClient, test_redis: Any) -> None:
        with patch("revenue_engine.api.health.get_redis", AsyncMock(return_value=test_redis)):
            response = await test_client.get("/health/redis")

        assert response.status_code == 200
        assert response.json()["redis"] == "connected"

    @pytest.mark.asyncio
    async def test_redis_health_check_failure(self, test_client: AsyncClient) -> None:
        with patch(
            "revenue_engine.api.health.get_redis",
            AsyncMock(side_effect=ConnectionError("Redis connection failed")),
        ):
            response = await test_client.get("/health/redis")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert "Redis connection failed" in data["redis"]


class TestDispatcherHealthCheck:
    """Test dispatcher health check endpoint."""

    @pytest.mark.asyncio
    async def test_running_dispatcher_reports_stats(
        self, test_client: AsyncClient, wire_event: dict[str, Any]
    ) -> None:
        await test_client.post("/api/v1/revenue/events", json=wire_event)

        response = await test_client.get("/health/dispatcher")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["workers"] == 2
        assert set(data["stats"]) >= {"received", "applied", "duplicate", "rejected", "failed", "retries"}

    @pytest.mark.asyncio
    async def test_missing_dispatcher_is_unhealthy(self, test_client: AsyncClient) -> None:
        app.dependency_overrides[get_dispatcher] = lambda: None

        response = await test_client.get("/health/dispatcher")

        assert response.status_code == 503
        assert response.json()["dispatcher"] == "stopped"
