"""Device command model, status and priority enums."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_dispatch.utils.crypto import Crypto
from fleet_dispatch.utils.db import Base
from fleet_dispatch.utils.time import Time


class CommandStatus(str, Enum):
    """Lifecycle states. See services.lifecycle for legal transitions."""

    PENDING = "pending"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    RETRIED = "retried"

    @property
    def is_terminal(self) -> bool:
        """Terminal states always carry a completed_at timestamp."""
        return self in _TERMINAL


_TERMINAL = frozenset({
    CommandStatus.COMPLETED,
    CommandStatus.FAILED,
    CommandStatus.CANCELLED,
    CommandStatus.EXPIRED,
    CommandStatus.RETRIED,
})


class CommandPriority(str, Enum):
    """Priority bands, the primary claim ordering key."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort key; higher ranks are claimed first."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    CommandPriority.LOW: 0,
    CommandPriority.NORMAL: 1,
    CommandPriority.HIGH: 2,
    CommandPriority.CRITICAL: 3,
}


class Command(Base):
    """Command queued for a device.

    Only status, timestamps, result and metadata change after insert.
    ``priority_rank`` mirrors ``priority`` so the claim query can walk the
    ``ix_commands_claim`` index in order.
    """

    __tablename__ = "commands"
    __table_args__ = (
        Index(
            "ix_commands_claim",
            "device_id", "status", "priority_rank", "created_at",
        ),
        Index("ix_commands_expiry", "status", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=Crypto.new_id)
    device_id: Mapped[str] = mapped_column(String(36), index=True)
    command_type: Mapped[str] = mapped_column(String(64), index=True)
    params: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(16), default=CommandPriority.NORMAL.value)
    priority_rank: Mapped[int] = mapped_column(SmallInteger, default=1)
    status: Mapped[str] = mapped_column(String(16), default=CommandStatus.PENDING.value)
    requires_ack: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=Time.now)
    execute_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    ttl_seconds: Mapped[int] = mapped_column(Integer)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    meta: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)
    retry_of: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    retried_as: Mapped[str | None] = mapped_column(String(64), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
