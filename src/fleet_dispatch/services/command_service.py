"""Business logic for device command dispatch."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError

from fleet_dispatch.dao.command_dao import CommandDAO
from fleet_dispatch.dao.device_dao import DeviceDAO
from fleet_dispatch.errors import (
    CommandNotFoundError,
    CommandValidationError,
    DeviceNotFoundError,
    DuplicateCommandIdError,
    InvalidTransitionError,
)
from fleet_dispatch.models.command import Command, CommandPriority, CommandStatus
from fleet_dispatch.models.command_types import COMMAND_TYPES
from fleet_dispatch.plugins.contracts.push import PushNotifier
from fleet_dispatch.services.lifecycle import CommandEvent, Lifecycle
from fleet_dispatch.utils.crypto import Crypto
from fleet_dispatch.utils.time import Time

logger = structlog.get_logger()

_MAX_COMMAND_ID_LENGTH = 64
_MAX_LIST_LIMIT = 500


class CommandService:
    """Built once at startup with its DAOs and push notifier pre-wired.

    Every status change goes through ``_apply``, which issues one guarded
    update and turns a miss into ``CommandNotFoundError`` or
    ``InvalidTransitionError``. The claim engine uses the same guarded
    update but treats a miss as a lost race and skips the row.
    """

    def __init__(
        self,
        command_dao: CommandDAO,
        device_dao: DeviceDAO,
        *,
        push_notifier: PushNotifier,
        default_ttl_seconds: int = 24 * 60 * 60,
        default_claim_batch: int = 10,
        claim_batch_max: int = 50,
    ) -> None:
        self._dao = command_dao
        self._devices = device_dao
        self._push = push_notifier
        self._default_ttl = default_ttl_seconds
        self._default_batch = default_claim_batch
        self._batch_max = claim_batch_max

    # --- operator: enqueue ---

    async def enqueue(
        self,
        device_id: str,
        command_type: str,
        params: dict[str, Any] | None = None,
        *,
        priority: str = CommandPriority.NORMAL.value,
        requires_ack: bool = False,
        execute_at: datetime | None = None,
        ttl_seconds: int | None = None,
        command_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        queued_by: str = "system",
        now: datetime | None = None,
    ) -> Command:
        """Create a pending command for a device.

        The push notifier is told after commit when the command is claimable
        right away; a notifier failure is logged and never fails the enqueue.

        Raises:
            CommandValidationError: If any field is malformed.
            DeviceNotFoundError: If the device is unknown.
            DuplicateCommandIdError: If ``command_id`` is already taken.
        """
        now = now or Time.now()
        band = CommandService._parse_priority(priority)
        ttl = CommandService._check_ttl(
            self._default_ttl if ttl_seconds is None else ttl_seconds,
        )
        CommandService._check_payload(command_type, params, metadata, command_id)
        eligible_at = Time.ensure_utc(execute_at) if execute_at is not None else now
        expires_at = now + timedelta(seconds=ttl)
        if eligible_at >= expires_at:
            raise CommandValidationError(
                "execute_at must fall before the command's TTL elapses",
            )

        async with self._devices.transaction():
            device = await self._devices.find_by_id(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)

        command = Command(
            id=command_id or Crypto.new_id(),
            device_id=device_id,
            command_type=command_type,
            params=CommandService._dump(params),
            priority=band.value,
            priority_rank=band.rank,
            status=CommandStatus.PENDING.value,
            requires_ack=requires_ack,
            created_at=now,
            execute_at=eligible_at,
            ttl_seconds=ttl,
            expires_at=expires_at,
            meta=CommandService._dump({**(metadata or {}), "queued_by": queued_by}),
            retry_count=0,
        )
        async with self._dao.transaction():
            if command_id is not None and await self._dao.find_by_id(command_id):
                raise DuplicateCommandIdError(command_id)
            try:
                await self._dao.insert(command)
            except IntegrityError as error:
                raise DuplicateCommandIdError(command.id) from error
            await self._dao.commit()

        logger.info(
            "command_enqueued",
            command_id=command.id,
            device_id=device_id,
            command_type=command_type,
            priority=band.value,
            queued_by=queued_by,
        )
        if eligible_at <= now:
            await self._notify(command)
        return command

    # --- device: claim engine ---

    async def claim_batch(
        self,
        device_id: str,
        limit: int | None = None,
        *,
        now: datetime | None = None,
    ) -> list[Command]:
        """Atomically take up to ``limit`` eligible commands for a device.

        Each candidate is flipped to ``in_progress`` by its own guarded
        update. A candidate whose update matches no row was taken by a
        racing poll (or cancelled/expired) and is skipped, so a command
        appears in at most one batch. Never waits for work.

        Returns:
            Claimed commands, highest priority first, then oldest first.

        Raises:
            CommandValidationError: If ``limit`` is less than 1.
        """
        now = now or Time.now()
        size = self._batch_size(limit)
        claimed_ids: list[str] = []
        async with self._dao.transaction():
            candidates = await self._dao.list_eligible(device_id, now, size)
            for candidate in candidates:
                won = await self._dao.transition(
                    candidate.id, CommandEvent.CLAIM, now=now,
                )
                if won:
                    claimed_ids.append(candidate.id)
                else:
                    logger.debug(
                        "claim_lost_race",
                        command_id=candidate.id,
                        device_id=device_id,
                    )
            claimed = await self._dao.find_many(claimed_ids)
            if candidates:
                await self._dao.commit()

        if claimed:
            logger.info(
                "commands_claimed",
                device_id=device_id,
                count=len(claimed),
                command_ids=claimed_ids,
            )
        return claimed

    # --- device: delivery receipt and acknowledgment ---

    async def mark_queued(
        self,
        command_id: str,
        *,
        device_id: str | None = None,
    ) -> Command:
        """Record that the push channel delivered a pending command.

        Raises:
            CommandNotFoundError: If unknown or owned by another device.
            InvalidTransitionError: If the command is no longer pending.
        """
        async with self._dao.transaction():
            command = await self._find_owned(command_id, device_id)
            Lifecycle.check(command_id, command.status, CommandEvent.DELIVER)
            await self._apply(command_id, CommandEvent.DELIVER, now=Time.now())
            command = await self._find_owned(command_id, device_id)
            await self._dao.commit()
        return command

    async def acknowledge(
        self,
        command_id: str,
        success: bool,
        result: dict[str, Any] | None = None,
        *,
        error: str | None = None,
        device_id: str | None = None,
        now: datetime | None = None,
    ) -> Command:
        """Record the device's outcome for an in-progress command.

        The device result is merged into any stored result; a second
        acknowledgment is rejected and leaves the first result untouched.

        Raises:
            CommandNotFoundError: If unknown or owned by another device.
            InvalidTransitionError: If the command is not in_progress.
        """
        now = now or Time.now()
        event = CommandEvent.SUCCEED if success else CommandEvent.FAIL
        async with self._dao.transaction():
            command = await self._find_owned(command_id, device_id)
            Lifecycle.check(command_id, command.status, event)
            merged = {
                **(CommandService._load(command.result) or {}),
                **(result or {}),
                "acknowledged_at": now.isoformat(),
            }
            if not success and error is not None:
                merged["error"] = error
            await self._apply(
                command_id,
                event,
                now=now,
                values={"result": CommandService._dump(merged)},
            )
            command = await self._find_owned(command_id, device_id)
            await self._dao.commit()

        logger.info(
            "command_acknowledged",
            command_id=command_id,
            device_id=command.device_id,
            status=command.status,
        )
        return command

    # --- operator: cancel and retry ---

    async def cancel(
        self,
        command_id: str,
        *,
        cancelled_by: str = "system",
        now: datetime | None = None,
    ) -> Command:
        """Cancel a command that no device has claimed yet.

        Raises:
            CommandNotFoundError: If the command does not exist.
            InvalidTransitionError: If the command was already claimed or
                reached a terminal state.
        """
        now = now or Time.now()
        async with self._dao.transaction():
            command = await self._find_owned(command_id, None)
            Lifecycle.check(command_id, command.status, CommandEvent.CANCEL)
            merged = {
                **(CommandService._load(command.result) or {}),
                "cancelled_by": cancelled_by,
                "cancelled_at": now.isoformat(),
            }
            await self._apply(
                command_id,
                CommandEvent.CANCEL,
                now=now,
                values={"result": CommandService._dump(merged)},
            )
            command = await self._find_owned(command_id, None)
            await self._dao.commit()

        logger.info(
            "command_cancelled", command_id=command_id, cancelled_by=cancelled_by,
        )
        return command

    async def retry(
        self,
        command_id: str,
        *,
        retried_by: str = "system",
        now: datetime | None = None,
    ) -> Command:
        """Spawn a pending successor for a failed command.

        The original moves to ``retried`` with ``retried_as`` pointing at
        the successor; the successor copies device, type, params, priority
        and requires_ack and carries ``retry_of`` and ``retry_count``. Both
        writes share one transaction, so a failed insert leaves the
        original ``failed``.

        Returns:
            The new command.

        Raises:
            CommandNotFoundError: If the command does not exist.
            InvalidTransitionError: If the command is not ``failed``
                (including one that was already retried).
            DuplicateCommandIdError: If the successor id collides; the
                original is left untouched.
        """
        now = now or Time.now()
        successor_id = Crypto.new_id()
        async with self._dao.transaction():
            original = await self._find_owned(command_id, None)
            Lifecycle.check(command_id, original.status, CommandEvent.RETRY)
            merged_result = {
                **(CommandService._load(original.result) or {}),
                "retried_as": successor_id,
                "retried_at": now.isoformat(),
            }
            await self._apply(
                command_id,
                CommandEvent.RETRY,
                now=now,
                values={
                    "retried_as": successor_id,
                    "result": CommandService._dump(merged_result),
                },
            )
            successor = Command(
                id=successor_id,
                device_id=original.device_id,
                command_type=original.command_type,
                params=original.params,
                priority=original.priority,
                priority_rank=original.priority_rank,
                status=CommandStatus.PENDING.value,
                requires_ack=original.requires_ack,
                created_at=now,
                execute_at=now,
                ttl_seconds=original.ttl_seconds,
                expires_at=now + timedelta(seconds=original.ttl_seconds),
                meta=CommandService._dump({
                    **(CommandService._load(original.meta) or {}),
                    "retried_by": retried_by,
                }),
                retry_of=original.id,
                retry_count=original.retry_count + 1,
            )
            try:
                await self._dao.insert(successor)
            except IntegrityError as error:
                raise DuplicateCommandIdError(successor_id) from error
            await self._dao.commit()

        logger.info(
            "command_retried",
            command_id=command_id,
            successor_id=successor_id,
            retry_count=successor.retry_count,
            retried_by=retried_by,
        )
        await self._notify(successor)
        return successor

    # --- reads ---

    async def get_status(self, command_id: str) -> Command:
        """Return a single command.

        Raises:
            CommandNotFoundError: If the command does not exist.
        """
        async with self._dao.transaction():
            return await self._find_owned(command_id, None)

    async def list_commands(
        self,
        device_id: str,
        *,
        status: str | None = None,
        command_type: str | None = None,
        priority: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Command]:
        """List a device's commands, newest first.

        Raises:
            CommandValidationError: If a filter or the page window is invalid.
        """
        if status is not None and status not in {s.value for s in CommandStatus}:
            raise CommandValidationError(f"Unknown status: {status}")
        if priority is not None:
            CommandService._parse_priority(priority)
        if not 1 <= limit <= _MAX_LIST_LIMIT:
            raise CommandValidationError(
                f"limit must be between 1 and {_MAX_LIST_LIMIT}",
            )
        if offset < 0:
            raise CommandValidationError("offset must not be negative")
        async with self._dao.transaction():
            return await self._dao.list_by_device(
                device_id,
                status=status,
                command_type=command_type,
                priority=priority,
                limit=limit,
                offset=offset,
            )

    # --- helpers ---

    async def _find_owned(self, command_id: str, device_id: str | None) -> Command:
        """Load a command, hiding commands that belong to another device."""
        command = await self._dao.find_by_id(command_id)
        if command is None or (device_id is not None and command.device_id != device_id):
            raise CommandNotFoundError(command_id)
        return command

    async def _apply(
        self,
        command_id: str,
        event: CommandEvent,
        *,
        now: datetime,
        values: dict[str, Any] | None = None,
    ) -> None:
        """Apply a lifecycle event or report why it could not be applied.

        Raises:
            CommandNotFoundError: If the command does not exist.
            InvalidTransitionError: If the current status does not allow
                ``event``.
        """
        if await self._dao.transition(command_id, event, now=now, values=values):
            return
        current = await self._dao.find_by_id(command_id)
        if current is None:
            raise CommandNotFoundError(command_id)
        logger.info(
            "transition_rejected",
            command_id=command_id,
            event=event.value,
            status=current.status,
        )
        raise InvalidTransitionError(command_id, current.status, event.value)

    async def _notify(self, command: Command) -> None:
        """Wake the device; failures are logged, never raised."""
        try:
            await self._push.notify(
                command.device_id, CommandService.to_poll_dict(command),
            )
        except Exception:
            logger.warning(
                "push_notify_failed",
                command_id=command.id,
                device_id=command.device_id,
                exc_info=True,
            )

    def _batch_size(self, limit: int | None) -> int:
        """Apply the default and the server-side cap to a requested batch."""
        if limit is None:
            return min(self._default_batch, self._batch_max)
        if limit < 1:
            raise CommandValidationError("limit must be at least 1")
        return min(limit, self._batch_max)

    @staticmethod
    def _parse_priority(priority: str) -> CommandPriority:
        """Map a priority name to its band."""
        try:
            return CommandPriority(priority)
        except ValueError as error:
            allowed = ", ".join(p.value for p in CommandPriority)
            raise CommandValidationError(
                f"Invalid priority. Must be one of: {allowed}",
            ) from error

    @staticmethod
    def _check_ttl(ttl_seconds: object) -> int:
        """TTL must be a positive whole number of seconds."""
        if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int):
            raise CommandValidationError("ttl must be an integer number of seconds")
        if ttl_seconds <= 0:
            raise CommandValidationError("ttl must be positive")
        return ttl_seconds

    @staticmethod
    def _check_payload(
        command_type: str,
        params: object,
        metadata: object,
        command_id: str | None,
    ) -> None:
        """Validate the type, structured fields and caller-supplied id."""
        if command_type not in COMMAND_TYPES:
            raise CommandValidationError(f"Unknown command type: {command_type}")
        if params is not None and not isinstance(params, dict):
            raise CommandValidationError("params must be a JSON object")
        if metadata is not None and not isinstance(metadata, dict):
            raise CommandValidationError("metadata must be a JSON object")
        if command_id is not None and (
            not command_id or len(command_id) > _MAX_COMMAND_ID_LENGTH
        ):
            raise CommandValidationError(
                f"command_id must be 1-{_MAX_COMMAND_ID_LENGTH} characters",
            )

    @staticmethod
    def _dump(value: dict[str, Any] | None) -> str | None:
        """Encode a structured field for storage."""
        return json.dumps(value) if value is not None else None

    @staticmethod
    def _load(text: str | None) -> dict[str, Any] | None:
        """Decode a stored structured field."""
        return json.loads(text) if text else None

    @staticmethod
    def metadata_of(cmd: Command) -> dict[str, Any]:
        """Free-form metadata plus the typed retry linkage."""
        return {
            **(CommandService._load(cmd.meta) or {}),
            "retry_of": cmd.retry_of,
            "retried_as": cmd.retried_as,
            "retry_count": cmd.retry_count,
        }

    @staticmethod
    def to_dict(cmd: Command) -> dict[str, Any]:
        """Serialize a command to a full dict for operator views."""
        return {
            "id": cmd.id,
            "device_id": cmd.device_id,
            "command_type": cmd.command_type,
            "params": CommandService._load(cmd.params),
            "priority": cmd.priority,
            "status": cmd.status,
            "requires_ack": cmd.requires_ack,
            "ttl": cmd.ttl_seconds,
            "created_at": Time.isoformat(cmd.created_at),
            "execute_at": Time.isoformat(cmd.execute_at),
            "expires_at": Time.isoformat(cmd.expires_at),
            "claimed_at": Time.isoformat(cmd.claimed_at),
            "completed_at": Time.isoformat(cmd.completed_at),
            "result": CommandService._load(cmd.result),
            "metadata": CommandService.metadata_of(cmd),
        }

    @staticmethod
    def to_poll_dict(cmd: Command) -> dict[str, Any]:
        """Serialize a command to a minimal dict for device poll responses."""
        return {
            "command_id": cmd.id,
            "type": cmd.command_type,
            "params": CommandService._load(cmd.params),
            "priority": cmd.priority,
            "requires_ack": cmd.requires_ack,
            "expires_at": Time.isoformat(cmd.expires_at),
        }
