"""Logging setup using Loguru.

This module configures structured logging with:
- JSON output for production environments
- Context variables for operation tracking (operation_id, owner_id, operation)
- Custom serialization without Loguru's verbose defaults
- File rotation and compression

Example:
    >>> from waypointdb.logging import logger, set_operation_context
    >>> set_operation_context(operation="migration", owner_id="user-123")
    >>> logger.info("Migration started")
    >>> # JSON output includes owner_id and operation automatically
"""

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from waypointdb.config import settings

# =============================================================================
# Context Variables for Operation Tracking
# =============================================================================

operation_id_var: ContextVar[str | None] = ContextVar("operation_id", default=None)
owner_id_var: ContextVar[str | None] = ContextVar("owner_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


# =============================================================================
# Custom JSON Serialization
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Custom JSON serializer for production logs.

    Args:
        record: Loguru log record dictionary

    Returns:
        JSON string with selected fields and context
    """
    subset = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }

    if operation_id := operation_id_var.get():
        subset["operation_id"] = operation_id
    if owner_id := owner_id_var.get():
        subset["owner_id"] = owner_id
    if operation := operation_var.get():
        subset["operation"] = operation

    subset.update(record["extra"])

    if exc := record["exception"]:
        subset["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(
                exc.type, exc.value, exc.traceback
            ),
        }

    return json.dumps(subset, default=str)


def patching(record: dict[str, Any]) -> None:
    """Patch log records with serialized JSON.

    Args:
        record: Loguru log record to patch (modified in-place)
    """
    record["serialized"] = serialize(record)


def custom_formatter(record: dict[str, Any]) -> str:
    """Formatter emitting the pre-serialized JSON line."""
    return "{serialized}\n"


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Configure Loguru.

    Removes the default handler, patches the logger with JSON serialization,
    adds a stderr handler (JSON or human-readable) and optionally a rotating
    file handler.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Output JSON format (True for production)
        log_file: Optional file path for log output
        colorize: Enable colored output for human-readable logs

    Returns:
        Configured Loguru logger instance
    """
    loguru_logger.remove()

    patched_logger = loguru_logger.patch(patching)

    if json_logs:
        patched_logger.add(
            sys.stderr,
            level=level,
            format=custom_formatter,
            serialize=False,
        )
    else:
        format_str = (
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

        patched_logger.add(
            sys.stderr,
            level=level,
            format=format_str,
            colorize=colorize,
        )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        patched_logger.add(
            log_file,
            level=level,
            format=custom_formatter if json_logs else "{time} | {level} | {message}",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )

    return patched_logger


# =============================================================================
# Initialize Global Logger
# =============================================================================

logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.data_dir / "waypointdb.log" if settings.log_to_file else None,
    colorize=not settings.log_json,
)


# =============================================================================
# Utility Functions
# =============================================================================


def set_operation_context(
    operation_id: str | None = None,
    owner_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Set context variables included in every subsequent log message.

    Args:
        operation_id: Unique identifier for the running operation
        owner_id: Account the operation acts for
        operation: Operation name (e.g., "migration", "backup")
    """
    if operation_id is not None:
        operation_id_var.set(operation_id)
    if owner_id is not None:
        owner_id_var.set(owner_id)
    if operation is not None:
        operation_var.set(operation)


def clear_operation_context() -> None:
    """Clear all context variables."""
    operation_id_var.set(None)
    owner_id_var.set(None)
    operation_var.set(None)


def get_operation_context() -> dict[str, str | None]:
    """Get current context variable values."""
    return {
        "operation_id": operation_id_var.get(),
        "owner_id": owner_id_var.get(),
        "operation": operation_var.get(),
    }


__all__ = [
    "logger",
    "operation_id_var",
    "owner_id_var",
    "operation_var",
    "set_operation_context",
    "clear_operation_context",
    "get_operation_context",
    "setup_logging",
]
