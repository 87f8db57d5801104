"""Data access for the Command model — the command store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, cast

from sqlalchemy import CursorResult, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_dispatch.models.command import Command, CommandStatus
from fleet_dispatch.services.lifecycle import CommandEvent, Lifecycle

_active_conn: ContextVar[AsyncSession] = ContextVar("_command_dao_conn")


class CommandDAO:
    """Data access for device commands.

    Use transaction() to wrap a group of operations in one unit of work.
    Status changes go through ``transition()`` only: a single
    ``UPDATE ... WHERE status IN (...)`` whose row count says whether this
    caller won the row.
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

    async def insert(self, command: Command) -> Command:
        """Insert a new command row and flush it.

        Raises:
            sqlalchemy.exc.IntegrityError: If the id already exists.
        """
        self._conn().add(command)
        await self._conn().flush()
        return command

    async def find_by_id(self, command_id: str) -> Command | None:
        """Find a command by its ID, reloading any cached copy."""
        result = await self._conn().execute(
            select(Command)
            .where(Command.id == command_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    async def find_many(self, command_ids: list[str]) -> list[Command]:
        """Load commands by id, returned in the order of ``command_ids``."""
        if not command_ids:
            return []
        result = await self._conn().execute(
            select(Command)
            .where(Command.id.in_(command_ids))
            .execution_options(populate_existing=True),
        )
        by_id = {command.id: command for command in result.scalars()}
        return [by_id[cid] for cid in command_ids if cid in by_id]

    async def list_eligible(
        self,
        device_id: str,
        now: datetime,
        limit: int,
    ) -> list[Command]:
        """Claimable commands for a device, highest priority then oldest first.

        Commands past their TTL are never returned, even before the sweeper
        has marked them expired. Read-only; the claim engine flips each row
        with ``transition()``.
        """
        result = await self._conn().execute(
            select(Command)
            .where(
                Command.device_id == device_id,
                Command.status.in_(Lifecycle.source_values(CommandEvent.CLAIM)),
                Command.execute_at <= now,
                Command.expires_at > now,
            )
            .order_by(
                Command.priority_rank.desc(),
                Command.created_at.asc(),
                Command.id.asc(),
            )
            .limit(limit),
        )
        return list(result.scalars().all())

    async def list_expirable(
        self,
        now: datetime,
        limit: int,
        claimed_before: datetime | None = None,
    ) -> list[str]:
        """IDs of unresolved commands past their TTL.

        With ``claimed_before`` set, in_progress commands claimed before that
        instant are included as well.
        """
        overdue = Command.expires_at <= now
        if claimed_before is not None:
            overdue = or_(
                overdue,
                (Command.status == CommandStatus.IN_PROGRESS.value)
                & (Command.claimed_at <= claimed_before),
            )
        result = await self._conn().execute(
            select(Command.id)
            .where(
                Command.status.in_(Lifecycle.source_values(CommandEvent.EXPIRE)),
                overdue,
            )
            .order_by(Command.expires_at.asc())
            .limit(limit),
        )
        return list(result.scalars().all())

    async def transition(
        self,
        command_id: str,
        event: CommandEvent,
        *,
        now: datetime,
        values: dict[str, Any] | None = None,
    ) -> bool:
        """Apply ``event`` to one command if its status still allows it.

        ``claimed_at`` and ``completed_at`` are stamped with ``now`` as the
        lifecycle requires.

        Returns:
            True if this call moved the row, False if the guard matched
            nothing (unknown id, or another writer got there first).
        """
        changes: dict[str, Any] = dict(values or {})
        changes["status"] = Lifecycle.target(event).value
        if Lifecycle.stamps_claimed_at(event):
            changes["claimed_at"] = now
        if Lifecycle.stamps_completed_at(event):
            changes["completed_at"] = now
        result = await self._conn().execute(
            update(Command)
            .where(
                Command.id == command_id,
                Command.status.in_(Lifecycle.source_values(event)),
            )
            .values(**changes)
            .execution_options(synchronize_session=False),
        )
        return cast(CursorResult[Any], result).rowcount == 1

    async def list_by_device(
        self,
        device_id: str,
        *,
        status: str | None = None,
        command_type: str | None = None,
        priority: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Command]:
        """List commands for a device, newest first, with optional filters."""
        stmt = select(Command).where(Command.device_id == device_id)
        if status is not None:
            stmt = stmt.where(Command.status == status)
        if command_type is not None:
            stmt = stmt.where(Command.command_type == command_type)
        if priority is not None:
            stmt = stmt.where(Command.priority == priority)
        stmt = (
            stmt.order_by(Command.created_at.desc(), Command.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._conn().execute(stmt)
        return list(result.scalars().all())

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._conn().commit()
