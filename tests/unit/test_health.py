"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from blox_pipeline.main import app

client = TestClient(app)

QUEUE_STATS = {"pending": 2, "processing": 1, "dead": 0}


def test_health_all_services_healthy():
    """Redis, Postgres and queue depth all reported."""
    with (
        patch("blox_pipeline.routes.health.fast_redis.ping", AsyncMock(return_value=True)),
        patch("blox_pipeline.routes.health.db_health_check", AsyncMock(return_value={"healthy": True})),
        patch("blox_pipeline.routes.health.job_queue.stats", AsyncMock(return_value=QUEUE_STATS)),
    ):
        response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["redis"]["ok"] is True
    assert data["checks"]["database"]["ok"] is True
    assert data["checks"]["queue"]["topics"]["generate"] == QUEUE_STATS
    assert isinstance(data["checks"]["redis"]["latency_ms"], (int, float))


def test_health_database_unhealthy():
    with (
        patch("blox_pipeline.routes.health.fast_redis.ping", AsyncMock(return_value=True)),
        patch(
            "blox_pipeline.routes.health.db_health_check",
            AsyncMock(return_value={"healthy": False, "error": "Connection failed"}),
        ),
        patch("blox_pipeline.routes.health.job_queue.stats", AsyncMock(return_value=QUEUE_STATS)),
    ):
        response = client.get("/health")

    data = response.json()
    assert response.status_code == 200
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_health_redis_down_skips_queue():
    with (
        patch("blox_pipeline.routes.health.fast_redis.ping", AsyncMock(side_effect=ConnectionError("refused"))),
        patch("blox_pipeline.routes.health.db_health_check", AsyncMock(return_value={"healthy": True})),
    ):
        response = client.get("/health")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["error"] == "ConnectionError: refused"
    assert "queue" not in data["checks"]
