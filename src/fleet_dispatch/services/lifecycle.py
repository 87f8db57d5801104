"""Command lifecycle state machine.

The only place that knows which status changes are legal. Writers ask
``Lifecycle.sources(event)`` for the statuses to put in their guarded
``UPDATE ... WHERE status IN (...)`` and ``Lifecycle.target(event)`` for
the status to write, so a transition is checked and applied in one
statement.

    pending ──deliver──▶ queued
    pending/queued ──claim──▶ in_progress
    pending/queued ──cancel──▶ cancelled
    in_progress ──succeed──▶ completed
    in_progress ──fail──▶ failed
    pending/queued/in_progress ──expire──▶ expired
    failed ──retry──▶ retried
"""

from __future__ import annotations

from enum import Enum

from fleet_dispatch.errors import InvalidTransitionError
from fleet_dispatch.models.command import CommandStatus


class CommandEvent(str, Enum):
    """Events that move a command through its lifecycle."""

    DELIVER = "deliver"
    CLAIM = "claim"
    CANCEL = "cancel"
    SUCCEED = "succeed"
    FAIL = "fail"
    EXPIRE = "expire"
    RETRY = "retry"


_WAITING = frozenset({CommandStatus.PENDING, CommandStatus.QUEUED})
_UNRESOLVED = _WAITING | {CommandStatus.IN_PROGRESS}

_TRANSITIONS: dict[CommandEvent, tuple[frozenset[CommandStatus], CommandStatus]] = {
    CommandEvent.DELIVER: (frozenset({CommandStatus.PENDING}), CommandStatus.QUEUED),
    CommandEvent.CLAIM: (_WAITING, CommandStatus.IN_PROGRESS),
    CommandEvent.CANCEL: (_WAITING, CommandStatus.CANCELLED),
    CommandEvent.SUCCEED: (
        frozenset({CommandStatus.IN_PROGRESS}), CommandStatus.COMPLETED,
    ),
    CommandEvent.FAIL: (frozenset({CommandStatus.IN_PROGRESS}), CommandStatus.FAILED),
    CommandEvent.EXPIRE: (_UNRESOLVED, CommandStatus.EXPIRED),
    CommandEvent.RETRY: (frozenset({CommandStatus.FAILED}), CommandStatus.RETRIED),
}


class Lifecycle:
    """Static lookups over the transition table."""

    @staticmethod
    def sources(event: CommandEvent) -> frozenset[CommandStatus]:
        """Statuses from which ``event`` is legal."""
        return _TRANSITIONS[event][0]

    @staticmethod
    def target(event: CommandEvent) -> CommandStatus:
        """Status a command lands in after ``event``."""
        return _TRANSITIONS[event][1]

    @staticmethod
    def source_values(event: CommandEvent) -> list[str]:
        """``sources(event)`` as stored column values, for SQL guards."""
        return sorted(status.value for status in Lifecycle.sources(event))

    @staticmethod
    def can(event: CommandEvent, current: str) -> bool:
        """Return True if ``event`` is legal from status ``current``."""
        return current in {status.value for status in Lifecycle.sources(event)}

    @staticmethod
    def check(command_id: str, current: str, event: CommandEvent) -> CommandStatus:
        """Return the target status or raise if ``event`` is illegal.

        Raises:
            InvalidTransitionError: If ``current`` is not a source of ``event``.
        """
        if not Lifecycle.can(event, current):
            raise InvalidTransitionError(command_id, current, event.value)
        return Lifecycle.target(event)

    @staticmethod
    def stamps_claimed_at(event: CommandEvent) -> bool:
        """Only the claim stamps claimed_at."""
        return event is CommandEvent.CLAIM

    @staticmethod
    def stamps_completed_at(event: CommandEvent) -> bool:
        """Every event that lands in a terminal state stamps completed_at."""
        return Lifecycle.target(event).is_terminal
