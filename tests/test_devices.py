"""Tests for device registry endpoints and device API-key auth."""

from __future__ import annotations

from litestar import Litestar
from litestar.testing import TestClient


def test_register_device(
    client: TestClient[Litestar], operator_headers: dict[str, str],
) -> None:
    """POST /api/devices returns the device and its one-time API key."""
    response = client.post(
        "/api/devices", json={"name": "pixel-8"}, headers=operator_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "pixel-8"
    assert body["api_key"].startswith("fd_")
    assert body["device_id"]
    assert body["last_seen_at"] is None


def test_register_device_requires_name(
    client: TestClient[Litestar], operator_headers: dict[str, str],
) -> None:
    """A blank name is a validation error."""
    response = client.post(
        "/api/devices", json={"name": "  "}, headers=operator_headers,
    )
    assert response.status_code == 400
    assert response.json()["extra"]["code"] == "VALIDATION_ERROR"


def test_register_device_requires_operator(client: TestClient[Litestar]) -> None:
    """Registration without an operator token is rejected."""
    response = client.post("/api/devices", json={"name": "pixel-8"})
    assert response.status_code == 401


def test_device_api_key_is_not_an_operator_token(
    client: TestClient[Litestar],
    registered_device: tuple[str, dict[str, str]],
) -> None:
    """A device key cannot call operator endpoints."""
    _, device_headers = registered_device
    response = client.get("/api/devices", headers=device_headers)
    assert response.status_code == 401


def test_list_devices_and_last_seen(
    client: TestClient[Litestar],
    operator_headers: dict[str, str],
    registered_device: tuple[str, dict[str, str]],
) -> None:
    """Polling stamps last_seen_at, visible in the device list."""
    device_id, device_headers = registered_device
    client.get("/api/device/commands", headers=device_headers)

    response = client.get("/api/devices", headers=operator_headers)
    assert response.status_code == 200
    (device,) = response.json()
    assert device["device_id"] == device_id
    assert device["last_seen_at"] is not None
    assert "api_key" not in device


def test_unknown_api_key_rejected(client: TestClient[Litestar]) -> None:
    """An unknown device key gets 401."""
    response = client.get(
        "/api/device/commands", headers={"Authorization": "Bearer fd_nope"},
    )
    assert response.status_code == 401


def test_missing_api_key_rejected(client: TestClient[Litestar]) -> None:
    """A poll without credentials gets 401."""
    response = client.get("/api/device/commands")
    assert response.status_code == 401
