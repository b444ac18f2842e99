"""
Logging setup.

Modules log through `structlog.get_logger()` with snake_case event names and
keyword context. Private treasure inputs, nullifiers, witnesses and
signatures are never passed to a logger.
"""

from __future__ import annotations
import logging

import structlog

from .config import AETHERGRID_ENV


def configure_logging(level: int = logging.INFO, json: bool | None = None):
    """
    Configure structlog once for the process.

    Args:
        level: Minimum level to emit
        json: Force JSON output; defaults to JSON outside development
    """
    if json is None:
        json = AETHERGRID_ENV != "development"

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
