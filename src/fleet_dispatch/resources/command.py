"""Command resource — request parsing and views over CommandService."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fleet_dispatch.errors import CommandValidationError
from fleet_dispatch.models.command import CommandPriority
from fleet_dispatch.models.device import Device
from fleet_dispatch.services.command_service import CommandService
from fleet_dispatch.utils.time import Time


class CommandResource:
    """Operator and device command operations.

    Built once at startup with all dependencies pre-wired. Parses loosely
    typed request bodies, calls the service, and shapes the responses.
    """

    def __init__(self, *, command_service: CommandService) -> None:
        self._service = command_service

    # --- operator ---

    async def enqueue(
        self, device_id: str, data: dict[str, Any], operator: str,
    ) -> dict[str, str]:
        """Queue a command for a device.

        Body: {"command_type", "params"?, "priority"?, "requires_ack"?,
        "execute_at"?, "ttl"?, "command_id"?, "metadata"?}

        Raises:
            CommandValidationError: If the body is malformed.
            DeviceNotFoundError: If the device is unknown.
            DuplicateCommandIdError: If ``command_id`` is taken.
        """
        command_type = data.get("command_type")
        if not isinstance(command_type, str) or not command_type.strip():
            raise CommandValidationError("command_type is required")
        priority = data.get("priority", CommandPriority.NORMAL.value)
        if not isinstance(priority, str):
            raise CommandValidationError("priority must be a string")
        requires_ack = data.get("requires_ack", False)
        if not isinstance(requires_ack, bool):
            raise CommandValidationError("requires_ack must be a boolean")
        command_id = data.get("command_id")
        if command_id is not None and not isinstance(command_id, str):
            raise CommandValidationError("command_id must be a string")

        command = await self._service.enqueue(
            device_id,
            command_type.strip(),
            data.get("params"),
            priority=priority,
            requires_ack=requires_ack,
            execute_at=CommandResource._parse_execute_at(data.get("execute_at")),
            ttl_seconds=data.get("ttl"),
            command_id=command_id,
            metadata=data.get("metadata"),
            queued_by=operator,
        )
        return {"command_id": command.id, "status": command.status}

    async def list_commands(
        self,
        device_id: str,
        *,
        status: str | None = None,
        command_type: str | None = None,
        priority: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List a device's commands, newest first."""
        commands = await self._service.list_commands(
            device_id,
            status=status,
            command_type=command_type,
            priority=priority,
            limit=limit,
            offset=offset,
        )
        return [CommandService.to_dict(command) for command in commands]

    async def get_command(self, command_id: str) -> dict[str, Any]:
        """Full view of one command."""
        return CommandService.to_dict(await self._service.get_status(command_id))

    async def cancel(self, command_id: str, operator: str) -> dict[str, Any]:
        """Cancel an unclaimed command."""
        command = await self._service.cancel(command_id, cancelled_by=operator)
        return CommandService.to_dict(command)

    async def retry(self, command_id: str, operator: str) -> dict[str, Any]:
        """Retry a failed command; returns the successor's linkage."""
        successor = await self._service.retry(command_id, retried_by=operator)
        return {
            "command_id": successor.id,
            "status": successor.status,
            "retry_of": successor.retry_of,
            "retry_count": successor.retry_count,
        }

    # --- device ---

    async def poll(self, device: Device, limit: int | None) -> list[dict[str, Any]]:
        """Claim a batch of commands for the polling device."""
        commands = await self._service.claim_batch(device.id, limit)
        return [CommandService.to_poll_dict(command) for command in commands]

    async def acknowledge(
        self, device: Device, command_id: str, data: dict[str, Any],
    ) -> dict[str, Any]:
        """Record the device's outcome.

        Body: {"success": bool, "result"?: {...}, "error"?: str}
        """
        success = data.get("success")
        if not isinstance(success, bool):
            raise CommandValidationError("success must be a boolean")
        result = data.get("result")
        if result is not None and not isinstance(result, dict):
            raise CommandValidationError("result must be a JSON object")
        error = data.get("error")
        if error is not None and not isinstance(error, str):
            raise CommandValidationError("error must be a string")
        command = await self._service.acknowledge(
            command_id, success, result, error=error, device_id=device.id,
        )
        return {
            "command_id": command.id,
            "status": command.status,
            "result": CommandService.to_dict(command)["result"],
        }

    async def mark_received(self, device: Device, command_id: str) -> dict[str, str]:
        """Record that the push wake-up for a command reached the device."""
        command = await self._service.mark_queued(command_id, device_id=device.id)
        return {"command_id": command.id, "status": command.status}

    @staticmethod
    def _parse_execute_at(value: object) -> datetime | None:
        """Accept an ISO-8601 string or nothing."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise CommandValidationError("execute_at must be an ISO-8601 string")
        try:
            return Time.parse(value)
        except ValueError as error:
            raise CommandValidationError(
                f"execute_at is not a valid timestamp: {value}",
            ) from error
