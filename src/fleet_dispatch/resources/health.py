"""Health resource — protocol-agnostic health check logic."""

from __future__ import annotations

from fleet_dispatch.services.expiry_sweeper import ExpirySweeper


class HealthResource:
    """Health check operations."""

    def __init__(self, sweeper: ExpirySweeper | None = None) -> None:
        self._sweeper = sweeper

    def check(self) -> dict[str, str]:
        """Return current server health status."""
        status = {"status": "ok"}
        if self._sweeper is not None:
            status["sweeper"] = "running" if self._sweeper.running else "stopped"
        return status
