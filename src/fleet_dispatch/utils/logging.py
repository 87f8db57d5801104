"""Structured logging configuration using structlog.

Call LoggingSetup.configure() once at startup before any log calls.
"""

from __future__ import annotations

import logging

import structlog


class LoggingSetup:
    """Static helpers for process-wide structlog configuration."""

    @staticmethod
    def configure(*, json_output: bool = True, log_level: str = "INFO") -> None:
        """Configure structlog for the service.

        Args:
            json_output: Render JSON lines if True, dev console output otherwise.
            log_level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR).
        """
        shared_processors: list[structlog.types.Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if json_output:
            renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer()

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        structlog.configure(
            processors=[*shared_processors, renderer],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
