"""Device resource — registry operations and device authentication."""

from __future__ import annotations

from fleet_dispatch.errors import CommandValidationError
from fleet_dispatch.models.device import Device
from fleet_dispatch.services.device_service import DeviceService


class DeviceResource:
    """Device registration and API-key resolution.

    Built once at startup with all dependencies pre-wired.
    """

    def __init__(self, *, device_service: DeviceService) -> None:
        self._service = device_service

    async def register(self, data: dict[str, object]) -> dict[str, str | None]:
        """Register a device; the response is the only place its key appears.

        Raises:
            CommandValidationError: If ``name`` is missing or blank.
        """
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise CommandValidationError("name is required")
        device, api_key = await self._service.register_device(name.strip())
        return {**DeviceService.to_dict(device), "api_key": api_key}

    async def list_devices(self) -> list[dict[str, str | None]]:
        """Return every registered device."""
        devices = await self._service.list_devices()
        return [DeviceService.to_dict(device) for device in devices]

    async def resolve_device(self, api_key: str) -> Device:
        """Resolve a device from its API key.

        Raises:
            DeviceNotFoundError: If the key is unknown.
        """
        return await self._service.resolve_api_key(api_key)
