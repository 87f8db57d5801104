"""Data access for the Device model."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_dispatch.models.device import Device
from fleet_dispatch.utils.time import Time

_active_conn: ContextVar[AsyncSession] = ContextVar("_device_dao_conn")


class DeviceDAO:
    """Data access built once at startup with the connection pool.

    Use transaction() to wrap a group of operations in one unit of work.
    """

    def __init__(self, pool: async_sessionmaker[AsyncSession]) -> None:
        self._pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Open a unit of work. All DAO calls inside share one connection."""
        async with self._pool() as connection:
            context_token = _active_conn.set(connection)
            try:
                yield
            finally:
                _active_conn.reset(context_token)

    def _conn(self) -> AsyncSession:
        """Return the current unit-of-work connection."""
        return _active_conn.get()

    async def create_device(self, *, name: str, api_key_hash: str) -> Device:
        """Insert a new device and flush to populate its id."""
        device = Device(name=name, api_key_hash=api_key_hash)
        self._conn().add(device)
        await self._conn().flush()
        return device

    async def find_by_id(self, device_id: str) -> Device | None:
        """Find a device by primary key."""
        result = await self._conn().execute(
            select(Device).where(Device.id == device_id)
        )
        return result.scalar_one_or_none()

    async def find_by_key_hash(self, key_hash: str) -> Device | None:
        """Find a device by the SHA-256 hash of its API key."""
        result = await self._conn().execute(
            select(Device).where(Device.api_key_hash == key_hash)
        )
        return result.scalar_one_or_none()

    async def list_devices(self) -> list[Device]:
        """Return all devices, oldest registration first."""
        result = await self._conn().execute(
            select(Device).order_by(Device.created_at)
        )
        return list(result.scalars())

    async def touch_last_seen(self, device_id: str) -> None:
        """Stamp last_seen_at on a poll."""
        await self._conn().execute(
            update(Device)
            .where(Device.id == device_id)
            .values(last_seen_at=Time.now())
            .execution_options(synchronize_session=False)
        )

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._conn().commit()
