"""Structured logging configuration and state event helpers.

This module provides:
- structlog configuration for JSON (or console) logging to stderr
- Structured log events for commands, history moves and persistence writes
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable


def configure_logging(
    verbose: bool = False,
    json_output: bool = True,
) -> None:
    """Route both structlog events and stdlib log records to stderr.

    Events carry an ISO UTC timestamp and their level; exceptions are
    rendered inline. Call once per process, before the store is opened.

    Args:
        verbose: Emit DEBUG records (command and persistence events)
        json_output: One JSON object per line instead of key=value text
    """
    level = logging.DEBUG if verbose else logging.INFO

    # Library modules log through the standard library
    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    processors: list[Callable[..., Any]] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, optionally named."""
    return structlog.get_logger(name)


def log_command(command: str, recorded: bool, **fields: Any) -> None:
    """Log a command that changed the present state.

    Args:
        command: Command name (e.g., 'add_todo')
        recorded: Whether the previous state was archived for undo
        **fields: Command-specific context (ids, indices, ...)
    """
    log = get_logger("todostore.commands")
    log.debug("command_applied", command=command, recorded=recorded, **fields)


def log_history(action: str, past: int, future: int) -> None:
    """Log an undo, redo or reset of the history stacks.

    Args:
        action: 'undo', 'redo' or 'reset'
        past: Number of entries left in the past stack
        future: Number of entries in the future stack
    """
    log = get_logger("todostore.history")
    log.info("history_moved", action=action, past=past, future=future)


def log_persisted(backend: str, todos: int, categories: int) -> None:
    """Log a completed write of the state to the backend.

    Args:
        backend: Backend class name
        todos: Number of todos written
        categories: Number of categories written
    """
    log = get_logger("todostore.persistence")
    log.debug("state_persisted", backend=backend, todos=todos, categories=categories)
