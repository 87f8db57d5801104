"""Background TTL enforcement for unresolved commands."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timedelta

import structlog

from fleet_dispatch.dao.command_dao import CommandDAO
from fleet_dispatch.services.lifecycle import CommandEvent
from fleet_dispatch.utils.time import Time

logger = structlog.get_logger()


class ExpirySweeper:
    """Moves pending, queued and in_progress commands past their deadline
    to ``expired``, whether or not their device ever polls again.

    Runs on a fixed interval inside the server process. Each row is expired
    with the same guarded update the claim engine uses, so a claim or
    acknowledgment that lands first wins and the sweeper skips the row.
    """

    def __init__(
        self,
        command_dao: CommandDAO,
        *,
        interval_seconds: float = 30.0,
        batch_size: int = 500,
        claim_timeout_seconds: int = 0,
    ) -> None:
        self._dao = command_dao
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._claim_timeout = (
            timedelta(seconds=claim_timeout_seconds)
            if claim_timeout_seconds > 0
            else None
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """True while the background loop is scheduled."""
        return self._task is not None and not self._task.done()

    async def sweep_once(self, now: datetime | None = None) -> list[str]:
        """Run one expiry pass.

        Returns:
            IDs of the commands this pass expired.
        """
        now = now or Time.now()
        claimed_before = now - self._claim_timeout if self._claim_timeout else None
        expired: list[str] = []
        while True:
            async with self._dao.transaction():
                candidates = await self._dao.list_expirable(
                    now, self._batch_size, claimed_before=claimed_before,
                )
                for command_id in candidates:
                    if await self._dao.transition(
                        command_id, CommandEvent.EXPIRE, now=now,
                    ):
                        expired.append(command_id)
                if candidates:
                    await self._dao.commit()
            if len(candidates) < self._batch_size:
                break

        if expired:
            logger.info("commands_expired", count=len(expired), command_ids=expired)
        return expired

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info("expiry_sweeper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("expiry_sweeper_stopped")

    async def _run(self) -> None:
        """Sweep, sleep, repeat. A failed pass is logged and retried next tick."""
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("expiry_sweep_failed")
            await asyncio.sleep(self._interval)
