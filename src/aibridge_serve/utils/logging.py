"""structlog setup for the CLI and server entry points."""

from __future__ import annotations

import logging

import structlog


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to render key/value events on the console.

    Args:
        debug: Emit debug-level events as well as info and above.
    """
    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
