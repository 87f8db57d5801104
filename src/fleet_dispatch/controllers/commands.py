"""Operator controller for individual commands."""

from __future__ import annotations

from typing import Any

from litestar import Controller, get, post

from fleet_dispatch.controllers.errors import to_http
from fleet_dispatch.errors import DispatchError
from fleet_dispatch.resources.command import CommandResource


class CommandController(Controller):
    """JWT-authed status, cancel and retry endpoints."""

    path = "/api/commands"

    @get("/{command_id:str}")
    async def get_command(
        self,
        command_id: str,
        operator: str,
        command_resource: CommandResource,
    ) -> dict[str, Any]:
        """Return the full command record."""
        try:
            return await command_resource.get_command(command_id)
        except DispatchError as error:
            raise to_http(error) from error

    @post("/{command_id:str}/cancel", status_code=200)
    async def cancel_command(
        self,
        command_id: str,
        operator: str,
        command_resource: CommandResource,
    ) -> dict[str, Any]:
        """Cancel a command no device has claimed yet.

        409 means a device claimed it first (or it already finished).
        """
        try:
            return await command_resource.cancel(command_id, operator)
        except DispatchError as error:
            raise to_http(error) from error

    @post("/{command_id:str}/retry", status_code=201)
    async def retry_command(
        self,
        command_id: str,
        operator: str,
        command_resource: CommandResource,
    ) -> dict[str, Any]:
        """Retry a failed command as a new pending command."""
        try:
            return await command_resource.retry(command_id, operator)
        except DispatchError as error:
            raise to_http(error) from error
