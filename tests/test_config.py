"""Tests for configuration loading."""

from __future__ import annotations

from unittest.mock import patch

from fleet_dispatch.config import ConfigLoader, Settings


def test_settings_direct_construction() -> None:
    """Direct Settings() construction works without YAML (for tests)."""
    s = Settings(secret_key="test", database_url="sqlite+aiosqlite://")
    assert s.secret_key == "test"
    assert s.default_claim_batch == 10
    assert s.claim_batch_max == 50
    assert s.claim_timeout_seconds == 0


def test_load_settings_missing_env_uses_defaults() -> None:
    """load_settings for a nonexistent env falls back to field defaults."""
    with patch.dict("os.environ", {"FLEET_ENV": "nonexistent"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.secret_key == "change-me-in-production"
    assert s.database_url == "sqlite+aiosqlite:///fleet.db"
    assert s.default_command_ttl_seconds == 86400


def test_load_settings_dev_loads_yaml() -> None:
    """load_settings with FLEET_ENV=dev loads from config/dev/settings.yaml."""
    with patch.dict("os.environ", {"FLEET_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.database_url == "sqlite+aiosqlite:///fleet-dev.db"
    assert s.sweep_interval_seconds == 10
    assert s.log_json is False


def test_load_settings_explicit_overrides_yaml() -> None:
    """Explicit kwargs to load_settings override YAML values."""
    with patch.dict("os.environ", {"FLEET_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings(sweep_interval_seconds=2)
    assert s.sweep_interval_seconds == 2


def test_load_settings_env_var_overrides_yaml() -> None:
    """Environment variables override YAML values."""
    env = {"FLEET_ENV": "dev", "FLEET_DATABASE_URL": "sqlite+aiosqlite:///other.db"}
    with patch.dict("os.environ", env, clear=False):
        s = ConfigLoader.load_settings()
    assert s.database_url == "sqlite+aiosqlite:///other.db"


def test_env_var_sets_dispatch_limits() -> None:
    """Dispatch tunables are read from FLEET_* variables."""
    env = {
        "FLEET_ENV": "nonexistent",
        "FLEET_CLAIM_BATCH_MAX": "5",
        "FLEET_CLAIM_TIMEOUT_SECONDS": "900",
        "FLEET_SWEEPER_ENABLED": "false",
    }
    with patch.dict("os.environ", env, clear=False):
        s = ConfigLoader.load_settings()
    assert s.claim_batch_max == 5
    assert s.claim_timeout_seconds == 900
    assert s.sweeper_enabled is False
