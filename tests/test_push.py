"""Tests for push notifier plugins."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from fleet_dispatch.plugins.contracts.push import PushNotifier
from fleet_dispatch.plugins.log_push import LogPushNotifier


async def test_log_push_notifier_logs_wakeup() -> None:
    """The default notifier logs the wake-up it would have sent."""
    with capture_logs() as logs:
        await LogPushNotifier().notify(
            "dev-1", {"command_id": "c1", "type": "vibrate", "priority": "high"},
        )
    assert logs == [{
        "event": "push_wakeup_skipped",
        "log_level": "info",
        "device_id": "dev-1",
        "command_id": "c1",
        "command_type": "vibrate",
        "priority": "high",
    }]


def test_push_contract_is_abstract() -> None:
    """PushNotifier cannot be used without an implementation."""
    with pytest.raises(TypeError):
        PushNotifier()  # type: ignore[abstract]
