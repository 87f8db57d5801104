"""Timezone helpers."""

from __future__ import annotations

from datetime import datetime, timezone


class Time:
    """Static helpers for datetime normalization."""

    @staticmethod
    def now() -> datetime:
        """Return timezone-aware UTC now."""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """Ensure a datetime is UTC-aware. SQLite may strip timezone info."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def isoformat(dt: datetime | None) -> str | None:
        """Serialize an optional datetime as UTC ISO-8601."""
        if dt is None:
            return None
        return Time.ensure_utc(dt).isoformat()

    @staticmethod
    def parse(value: str) -> datetime:
        """Parse an ISO-8601 timestamp; naive values are taken as UTC.

        Raises:
            ValueError: If the string is not a valid ISO-8601 timestamp.
        """
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return Time.ensure_utc(datetime.fromisoformat(text))
