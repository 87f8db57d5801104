"""Business logic for the device registry and device API keys."""

from __future__ import annotations

import structlog

from fleet_dispatch.dao.device_dao import DeviceDAO
from fleet_dispatch.errors import DeviceNotFoundError
from fleet_dispatch.models.device import Device
from fleet_dispatch.utils.crypto import Crypto
from fleet_dispatch.utils.time import Time

logger = structlog.get_logger()


class DeviceService:
    """Built once at startup with its DAO pre-wired.

    Each method wraps its DAO calls in a transaction — one unit of work
    per service call.
    """

    def __init__(self, device_dao: DeviceDAO) -> None:
        self._dao = device_dao

    async def register_device(self, name: str) -> tuple[Device, str]:
        """Register a device and mint its API key.

        Returns:
            The device and the plaintext API key. Only the hash is stored,
            so the key cannot be recovered later.
        """
        api_key = Crypto.generate_api_key()
        async with self._dao.transaction():
            device = await self._dao.create_device(
                name=name, api_key_hash=Crypto.hash_key(api_key),
            )
            await self._dao.commit()
        logger.info("device_registered", device_id=device.id, name=name)
        return device, api_key

    async def resolve_api_key(self, api_key: str) -> Device:
        """Map a plaintext API key to its device and stamp last_seen_at.

        Raises:
            DeviceNotFoundError: If no device holds this key.
        """
        async with self._dao.transaction():
            device = await self._dao.find_by_key_hash(Crypto.hash_key(api_key))
            if device is None:
                raise DeviceNotFoundError("<api key>")
            await self._dao.touch_last_seen(device.id)
            await self._dao.commit()
        device.last_seen_at = Time.now()
        return device

    async def list_devices(self) -> list[Device]:
        """Return every registered device."""
        async with self._dao.transaction():
            return await self._dao.list_devices()

    @staticmethod
    def to_dict(device: Device) -> dict[str, str | None]:
        """Serialize a device for operator views."""
        return {
            "device_id": device.id,
            "name": device.name,
            "created_at": Time.isoformat(device.created_at),
            "last_seen_at": Time.isoformat(device.last_seen_at),
        }
