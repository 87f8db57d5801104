"""Tests for timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fleet_dispatch.utils.time import Time


def test_time_parse_accepts_z_suffix() -> None:
    """Trailing Z parses as UTC."""
    parsed = Time.parse("2030-05-01T12:00:00Z")
    assert parsed == datetime(2030, 5, 1, 12, tzinfo=timezone.utc)


def test_time_parse_normalizes_offsets() -> None:
    """Offsets are converted to UTC; naive values are taken as UTC."""
    assert Time.parse("2030-05-01T14:00:00+02:00").hour == 12
    assert Time.parse("2030-05-01T12:00:00").tzinfo is timezone.utc


def test_time_parse_rejects_garbage() -> None:
    """Unparseable timestamps raise ValueError."""
    with pytest.raises(ValueError):
        Time.parse("next tuesday")


def test_isoformat_handles_naive_and_none() -> None:
    """isoformat treats naive datetimes as UTC and passes None through."""
    naive = datetime(2030, 5, 1, 12) + timedelta(seconds=1)
    assert Time.isoformat(naive) == "2030-05-01T12:00:01+00:00"
    assert Time.isoformat(None) is None
