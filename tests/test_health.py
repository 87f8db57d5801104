"""Tests for health check endpoint."""

from __future__ import annotations

from litestar import Litestar
from litestar.testing import TestClient

from fleet_dispatch.app import create_app
from fleet_dispatch.config import Settings


def test_health_returns_ok(client: TestClient[Litestar]) -> None:
    """GET /api/health returns status ok and the sweeper state."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sweeper": "stopped"}


def test_health_reports_running_sweeper(settings: Settings) -> None:
    """The lifespan starts the sweeper when it is enabled."""
    enabled = settings.model_copy(update={"sweeper_enabled": True})
    with TestClient(app=create_app(enabled)) as test_client:
        response = test_client.get("/api/health")
    assert response.json()["sweeper"] == "running"
