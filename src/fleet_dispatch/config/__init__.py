"""Configuration package — re-exports for convenience."""

from fleet_dispatch.config.loader import ConfigLoader
from fleet_dispatch.config.settings import Settings

__all__ = ["ConfigLoader", "Settings"]
