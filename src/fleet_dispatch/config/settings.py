"""Settings model — pydantic-settings with env var support."""

from __future__ import annotations

from pydantic_settings import BaseSettings

ENV_PREFIX = "FLEET_"


class Settings(BaseSettings):
    """Server settings.

    Use ``ConfigLoader.load_settings()`` to build with YAML + env var layering.
    Direct construction (e.g. in tests) skips YAML loading.
    """

    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite+aiosqlite:///fleet.db"
    jwt_algorithm: str = "HS256"
    token_expire_minutes: int = 60

    # Command dispatch
    default_command_ttl_seconds: int = 24 * 60 * 60
    default_claim_batch: int = 10
    claim_batch_max: int = 50

    # Expiry sweeper; claim_timeout_seconds = 0 leaves in_progress rows to TTL.
    sweeper_enabled: bool = True
    sweep_interval_seconds: float = 30.0
    sweep_batch_size: int = 500
    claim_timeout_seconds: int = 0

    log_level: str = "INFO"
    log_json: bool = True

    model_config = {"env_prefix": ENV_PREFIX}
