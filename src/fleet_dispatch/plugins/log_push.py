"""Log-only push notifier — records wake-ups without sending them."""

from __future__ import annotations

from typing import Any

import structlog

from fleet_dispatch.plugins.contracts.push import PushNotifier

logger = structlog.get_logger()


class LogPushNotifier(PushNotifier):
    """Default notifier when no push transport is configured.

    Devices still receive their commands on the next scheduled poll.
    """

    async def notify(self, device_id: str, command: dict[str, Any]) -> None:
        """Log the wake-up that would have been sent."""
        logger.info(
            "push_wakeup_skipped",
            device_id=device_id,
            command_id=command.get("command_id"),
            command_type=command.get("type"),
            priority=command.get("priority"),
        )
