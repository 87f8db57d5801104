"""Operator controller for devices and their command queues."""

from __future__ import annotations

from typing import Any

from litestar import Controller, get, post

from fleet_dispatch.controllers.errors import to_http
from fleet_dispatch.errors import DispatchError
from fleet_dispatch.resources.command import CommandResource
from fleet_dispatch.resources.device import DeviceResource


class DeviceController(Controller):
    """JWT-authed endpoints for registering devices and queueing commands."""

    path = "/api/devices"

    @post("/", status_code=201)
    async def register_device(
        self,
        data: dict[str, Any],
        operator: str,
        device_resource: DeviceResource,
    ) -> dict[str, str | None]:
        """Register a device and return its one-time API key.

        Body: {"name": "..."}
        """
        try:
            return await device_resource.register(data)
        except DispatchError as error:
            raise to_http(error) from error

    @get("/")
    async def list_devices(
        self,
        operator: str,
        device_resource: DeviceResource,
    ) -> list[dict[str, str | None]]:
        """List all registered devices."""
        return await device_resource.list_devices()

    @post("/{device_id:str}/commands", status_code=202)
    async def queue_command(
        self,
        device_id: str,
        data: dict[str, Any],
        operator: str,
        command_resource: CommandResource,
    ) -> dict[str, str]:
        """Queue a command for a device."""
        try:
            return await command_resource.enqueue(device_id, data, operator)
        except DispatchError as error:
            raise to_http(error) from error

    @get("/{device_id:str}/commands")
    async def list_commands(
        self,
        device_id: str,
        operator: str,
        command_resource: CommandResource,
        status: str | None = None,
        command_type: str | None = None,
        priority: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List a device's commands, newest first, with optional filters."""
        try:
            return await command_resource.list_commands(
                device_id,
                status=status,
                command_type=command_type,
                priority=priority,
                limit=limit,
                offset=offset,
            )
        except DispatchError as error:
            raise to_http(error) from error
