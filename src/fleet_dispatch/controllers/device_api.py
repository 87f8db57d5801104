"""Device API controller — API-key-authed endpoints for polling devices."""

from __future__ import annotations

from typing import Any

from litestar import Controller, Request, get, post
from litestar.datastructures import State
from litestar.di import Provide
from litestar.exceptions import NotAuthorizedException
from litestar.types import Dependencies

from fleet_dispatch.controllers.errors import to_http
from fleet_dispatch.errors import DeviceNotFoundError, DispatchError
from fleet_dispatch.models.device import Device
from fleet_dispatch.resources.command import CommandResource
from fleet_dispatch.resources.device import DeviceResource


async def _provide_device_from_api_key(
    request: Request[object, object, State],
    device_resource: DeviceResource,
) -> Device:
    """Extract Bearer API key and resolve to a Device.

    Raises:
        NotAuthorizedException: If the header is missing, malformed,
            or the key does not map to a device.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise NotAuthorizedException(
            detail="Missing or invalid Authorization header",
        )
    api_key = header[len("Bearer "):]
    try:
        return await device_resource.resolve_device(api_key)
    except DeviceNotFoundError as error:
        raise NotAuthorizedException(detail="Unknown device API key") from error


class DeviceApiController(Controller):
    """Endpoints called by devices: poll, acknowledge, delivery receipt."""

    path = "/api/device"
    # Litestar declares dependencies as an instance var, so ClassVar
    # would fail mypy.  Suppress RUF012 (mutable class attribute).
    dependencies: Dependencies = {  # noqa: RUF012
        "device": Provide(_provide_device_from_api_key),
    }

    @get("/commands", status_code=200)
    async def poll_commands(
        self,
        device: Device,
        command_resource: CommandResource,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Claim pending commands. Empty list when nothing is eligible."""
        try:
            return await command_resource.poll(device, limit)
        except DispatchError as error:
            raise to_http(error) from error

    @post("/commands/{command_id:str}/ack", status_code=200)
    async def ack_command(
        self,
        command_id: str,
        data: dict[str, Any],
        device: Device,
        command_resource: CommandResource,
    ) -> dict[str, Any]:
        """Device reports success or failure for a claimed command."""
        try:
            return await command_resource.acknowledge(device, command_id, data)
        except DispatchError as error:
            raise to_http(error) from error

    @post("/commands/{command_id:str}/received", status_code=200)
    async def command_received(
        self,
        command_id: str,
        device: Device,
        command_resource: CommandResource,
    ) -> dict[str, str]:
        """Device confirms a push wake-up arrived before it polled."""
        try:
            return await command_resource.mark_received(device, command_id)
        except DispatchError as error:
            raise to_http(error) from error
