"""Exception hierarchy for command dispatch.

Every error carries a stable ``code`` so the HTTP layer can map it
without string matching.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base exception for all dispatch errors."""

    def __init__(self, message: str, *, code: str = "DISPATCH_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CommandNotFoundError(DispatchError):
    """Raised when the requested command does not exist."""

    def __init__(self, command_id: str) -> None:
        super().__init__(f"Command not found: {command_id}", code="NOT_FOUND")
        self.command_id = command_id


class DeviceNotFoundError(DispatchError):
    """Raised when the target device is unknown."""

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device not found: {device_id}", code="DEVICE_NOT_FOUND")
        self.device_id = device_id


class InvalidTransitionError(DispatchError):
    """Raised when a lifecycle event is not legal from the current status.

    Also raised when a racing transition landed first, e.g. an operator
    cancels a command a device has just claimed.
    """

    def __init__(self, command_id: str, current: str, event: str) -> None:
        super().__init__(
            f"Cannot {event} command {command_id} with status: {current}",
            code="INVALID_TRANSITION",
        )
        self.command_id = command_id
        self.current = current
        self.event = event


class DuplicateCommandIdError(DispatchError):
    """Raised when an enqueue reuses an existing command id."""

    def __init__(self, command_id: str) -> None:
        super().__init__(f"Command id already exists: {command_id}", code="DUPLICATE_ID")
        self.command_id = command_id


class CommandValidationError(DispatchError):
    """Raised for a malformed enqueue or claim request."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
