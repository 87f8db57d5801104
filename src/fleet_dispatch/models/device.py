"""Managed Android device model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_dispatch.utils.crypto import Crypto
from fleet_dispatch.utils.db import Base
from fleet_dispatch.utils.time import Time


class Device(Base):
    """Registered device. Only the SHA-256 hash of its API key is stored."""

    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=Crypto.new_id)
    name: Mapped[str] = mapped_column(String(255), index=True)
    api_key_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=Time.now)
    last_seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
