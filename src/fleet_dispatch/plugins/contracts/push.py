"""Push notifier contract — wake a device before its next poll."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class PushNotifier(ABC):
    """Tells a device that work is waiting.

    Implementations decide how to reach the device — FCM, a private push
    relay, or nothing at all. Delivery is best effort: the command is
    already committed and the device will find it on its next poll.
    """

    @abstractmethod
    async def notify(self, device_id: str, command: dict[str, Any]) -> None:
        """Send a wake-up for a newly claimable command.

        Args:
            device_id: The device that should poll.
            command: Poll-format dict of the command (id, type, priority).
        """
