"""Observability module for eve-door.

Provides structured logging shared by the lifecycle controller, the
simulation engine and the history aggregator.

Example:
    from eve_door.observability import LogContext, get_logger

    logger = get_logger(__name__)

    with LogContext(tick=3):
        logger.info("Set contact to false", times_opened=2)
"""

from eve_door.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)

__all__ = [
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
]
