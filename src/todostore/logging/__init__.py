"""Logging module for todostore.

This module provides structured logging with:
- structlog configuration for consistent log formatting
- Structured log events for commands, history and persistence

Usage:
    from todostore.logging import configure_logging, get_logger

    configure_logging(verbose=True)
    get_logger(__name__).info("store_opened", todos=3)
"""

from todostore.logging.events import (
    configure_logging,
    get_logger,
    log_command,
    log_history,
    log_persisted,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_command",
    "log_history",
    "log_persisted",
]
