"""Shared fixtures for fleet_dispatch tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any

import pytest
from litestar import Litestar
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_dispatch.app import create_app
from fleet_dispatch.config import Settings
from fleet_dispatch.dao.command_dao import CommandDAO
from fleet_dispatch.dao.device_dao import DeviceDAO
from fleet_dispatch.plugins.contracts.push import PushNotifier
from fleet_dispatch.services.command_service import CommandService
from fleet_dispatch.services.device_service import DeviceService
from fleet_dispatch.utils.db import Database
from fleet_dispatch.utils.jwt import JWTManager


class RecordingPushNotifier(PushNotifier):
    """Collects wake-ups; raises instead when ``fail`` is set."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail = False

    async def notify(self, device_id: str, command: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("push relay unreachable")
        self.sent.append((device_id, command))


@pytest.fixture()
def settings() -> Settings:
    """Test settings with in-memory SQLite and no background sweeper."""
    return Settings(
        secret_key="test-secret-key",
        database_url="sqlite+aiosqlite://",
        token_expire_minutes=30,
        sweeper_enabled=False,
        log_json=False,
    )


@pytest.fixture()
def push() -> RecordingPushNotifier:
    """Push notifier that records every wake-up."""
    return RecordingPushNotifier()


# --- service-level fixtures ---


@pytest.fixture()
async def pool() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh in-memory database per test."""
    session_pool = Database.init("sqlite+aiosqlite://")
    await Database.create_tables()
    yield session_pool
    await Database.close()


@pytest.fixture()
async def file_pool(
    tmp_path: Path,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """File-backed database, so concurrent sessions get their own connections."""
    session_pool = Database.init(f"sqlite+aiosqlite:///{tmp_path / 'fleet.db'}")
    await Database.create_tables()
    yield session_pool
    await Database.close()


def _service(
    session_pool: async_sessionmaker[AsyncSession], push: RecordingPushNotifier,
) -> CommandService:
    return CommandService(
        CommandDAO(session_pool),
        DeviceDAO(session_pool),
        push_notifier=push,
        default_ttl_seconds=3600,
        default_claim_batch=10,
        claim_batch_max=50,
    )


@pytest.fixture()
def command_service(
    pool: async_sessionmaker[AsyncSession], push: RecordingPushNotifier,
) -> CommandService:
    """CommandService over the in-memory database."""
    return _service(pool, push)


@pytest.fixture()
def file_command_service(
    file_pool: async_sessionmaker[AsyncSession], push: RecordingPushNotifier,
) -> CommandService:
    """CommandService over the file-backed database."""
    return _service(file_pool, push)


@pytest.fixture()
async def device_id(pool: async_sessionmaker[AsyncSession]) -> str:
    """A registered device in the in-memory database."""
    device, _ = await DeviceService(DeviceDAO(pool)).register_device("pixel-7")
    return device.id


@pytest.fixture()
async def file_device_id(file_pool: async_sessionmaker[AsyncSession]) -> str:
    """A registered device in the file-backed database."""
    device, _ = await DeviceService(DeviceDAO(file_pool)).register_device("pixel-7")
    return device.id


# --- HTTP fixtures ---


@pytest.fixture()
def client(
    settings: Settings, push: RecordingPushNotifier,
) -> Iterator[TestClient[Litestar]]:
    """Litestar test client with lifespan (tables created) managed."""
    app = create_app(settings, push_notifier=push)
    with TestClient(app=app) as test_client:
        yield test_client


@pytest.fixture()
def operator_headers(client: TestClient[Litestar]) -> dict[str, str]:
    """Bearer headers for operator ``alice``."""
    token = JWTManager.create_operator_token("alice")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def registered_device(
    client: TestClient[Litestar], operator_headers: dict[str, str],
) -> tuple[str, dict[str, str]]:
    """Register a device over HTTP; returns (device_id, device auth headers)."""
    response = client.post(
        "/api/devices", json={"name": "galaxy-s23"}, headers=operator_headers,
    )
    assert response.status_code == 201
    body = response.json()
    return body["device_id"], {"Authorization": f"Bearer {body['api_key']}"}
