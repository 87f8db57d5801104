"""Tests for the background expiry sweeper."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_dispatch.dao.command_dao import CommandDAO
from fleet_dispatch.errors import InvalidTransitionError
from fleet_dispatch.services.command_service import CommandService
from fleet_dispatch.services.expiry_sweeper import ExpirySweeper
from fleet_dispatch.utils.time import Time


@pytest.fixture()
def sweeper(pool: async_sessionmaker[AsyncSession]) -> ExpirySweeper:
    """Sweeper over the in-memory database, small batches to force paging."""
    return ExpirySweeper(CommandDAO(pool), interval_seconds=0.01, batch_size=2)


async def test_sweep_expires_unclaimed_command(
    command_service: CommandService, device_id: str, sweeper: ExpirySweeper,
) -> None:
    now = Time.now()
    command = await command_service.enqueue(device_id, "vibrate", ttl_seconds=1, now=now)

    assert await sweeper.sweep_once(now=now) == []
    expired = await sweeper.sweep_once(now=now + timedelta(seconds=1))

    assert expired == [command.id]
    fetched = await command_service.get_status(command.id)
    assert fetched.status == "expired"
    assert fetched.completed_at is not None
    assert await command_service.claim_batch(device_id, now=now + timedelta(seconds=2)) == []


async def test_sweep_expires_claimed_and_queued(
    command_service: CommandService, device_id: str, sweeper: ExpirySweeper,
) -> None:
    now = Time.now()
    claimed = await command_service.enqueue(device_id, "vibrate", ttl_seconds=5, now=now)
    await command_service.claim_batch(device_id, now=now)
    queued = await command_service.enqueue(device_id, "flash", ttl_seconds=5, now=now)
    await command_service.mark_queued(queued.id)

    expired = await sweeper.sweep_once(now=now + timedelta(seconds=10))

    assert set(expired) == {claimed.id, queued.id}


async def test_sweep_pages_through_batches(
    command_service: CommandService, device_id: str, sweeper: ExpirySweeper,
) -> None:
    now = Time.now()
    ids = {
        (await command_service.enqueue(device_id, "vibrate", ttl_seconds=1, now=now)).id
        for _ in range(5)
    }
    expired = await sweeper.sweep_once(now=now + timedelta(seconds=5))
    assert set(expired) == ids


async def test_sweep_leaves_terminal_results_alone(
    command_service: CommandService, device_id: str, sweeper: ExpirySweeper,
) -> None:
    now = Time.now()
    command = await command_service.enqueue(device_id, "vibrate", ttl_seconds=5, now=now)
    await command_service.claim_batch(device_id, now=now)
    await command_service.acknowledge(command.id, True, {"ok": True})

    assert await sweeper.sweep_once(now=now + timedelta(seconds=60)) == []
    fetched = await command_service.get_status(command.id)
    assert fetched.status == "completed"
    assert json.loads(fetched.result or "")["ok"] is True


async def test_ack_after_expiry_rejected(
    command_service: CommandService, device_id: str, sweeper: ExpirySweeper,
) -> None:
    now = Time.now()
    command = await command_service.enqueue(device_id, "vibrate", ttl_seconds=5, now=now)
    await command_service.claim_batch(device_id, now=now)
    await sweeper.sweep_once(now=now + timedelta(seconds=10))

    with pytest.raises(InvalidTransitionError) as excinfo:
        await command_service.acknowledge(command.id, True)
    assert excinfo.value.current == "expired"


async def test_claim_timeout_expires_stuck_commands(
    pool: async_sessionmaker[AsyncSession],
    command_service: CommandService,
    device_id: str,
) -> None:
    sweeper = ExpirySweeper(CommandDAO(pool), claim_timeout_seconds=60)
    now = Time.now()
    stuck = await command_service.enqueue(device_id, "vibrate", now=now)
    await command_service.claim_batch(device_id, now=now)
    waiting = await command_service.enqueue(device_id, "flash", now=now)

    assert await sweeper.sweep_once(now=now + timedelta(seconds=30)) == []
    expired = await sweeper.sweep_once(now=now + timedelta(seconds=61))

    assert expired == [stuck.id]
    fetched = await command_service.get_status(waiting.id)
    assert fetched.status == "pending"


async def test_loop_survives_failed_pass(sweeper: ExpirySweeper) -> None:
    calls: list[datetime | None] = []

    async def flaky_sweep(now: datetime | None = None) -> list[str]:
        calls.append(now)
        if len(calls) == 1:
            raise ConnectionError("database unavailable")
        return []

    sweeper.sweep_once = flaky_sweep  # type: ignore[method-assign]
    sweeper.start()
    try:
        for _ in range(100):
            if len(calls) >= 3:
                break
            await asyncio.sleep(0.01)
    finally:
        await sweeper.stop()

    assert len(calls) >= 3


async def test_start_and_stop(sweeper: ExpirySweeper) -> None:
    assert sweeper.running is False
    sweeper.start()
    sweeper.start()
    assert sweeper.running is True
    await sweeper.stop()
    assert sweeper.running is False
    await sweeper.stop()
