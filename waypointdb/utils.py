"""Utility functions for WaypointDB.

This module provides common helper functions for datetime handling,
identifier generation, and text normalization.
"""

import re
import uuid
from datetime import UTC, date, datetime
from typing import Any

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
"""Calendar date format accepted for daily baseline records."""


# =============================================================================
# Datetime Helpers
# =============================================================================


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime.

    Returns:
        Current datetime in UTC with timezone information
    """
    return datetime.now(UTC)


def utc_today() -> date:
    """Get the current UTC calendar date."""
    return utc_now().date()


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Args:
        dt: Datetime object or None

    Returns:
        ISO8601 formatted string or None if input is None

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def utc_timestamp_slug(dt: datetime | None = None) -> str:
    """Format a timestamp for use inside a file name.

    Example:
        >>> utc_timestamp_slug(datetime(2024, 1, 15, 10, 30, tzinfo=UTC))
        '2024-01-15T10-30-00Z'
    """
    dt = (dt or utc_now()).astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H-%M-%SZ")


def to_calendar_date(value: str | date | datetime) -> date:
    """Coerce a value to the UTC calendar date it falls on.

    Strings in ``YYYY-MM-DD`` form are read as plain dates; any other string
    is parsed as an ISO8601 timestamp and converted to UTC first.

    Args:
        value: Date, datetime, or string

    Returns:
        Calendar date

    Raises:
        ValueError: If the string is neither a date nor a timestamp

    Example:
        >>> to_calendar_date("2024-01-15T23:30:00-05:00")
        datetime.date(2024, 1, 16)
    """
    if isinstance(value, datetime):
        return parse_datetime(value).date()  # type: ignore[union-attr]
    if isinstance(value, date):
        return value
    if DATE_PATTERN.match(value):
        return date.fromisoformat(value)
    return parse_datetime(value).date()  # type: ignore[union-attr]


def format_date(value: date) -> str:
    """Format a calendar date as ``YYYY-MM-DD``."""
    return value.isoformat()


# =============================================================================
# Identifier Generation
# =============================================================================


def generate_id() -> str:
    """Generate a new globally unique identifier.

    Returns:
        Random (version 4) UUID string

    Example:
        >>> is_valid_id(generate_id())
        True
    """
    return str(uuid.uuid4())


def is_valid_id(value: Any) -> bool:
    """Check whether a value is a well-formed UUID string.

    Example:
        >>> is_valid_id("not-a-uuid")
        False
    """
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


# =============================================================================
# Text Helpers
# =============================================================================


def normalize_text(text: str, strip: bool = False) -> str:
    """Normalize item text for case-insensitive comparison.

    Args:
        text: Raw item text
        strip: Also trim surrounding whitespace (used by migration matching)

    Returns:
        Lowercased text

    Example:
        >>> normalize_text("Ship V1")
        'ship v1'
        >>> normalize_text("  Ship V1 ", strip=True)
        'ship v1'
    """
    lowered = text.lower()
    return lowered.strip() if strip else lowered


def safe_get(data: Any, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dictionary structure.

    Args:
        data: Dictionary to navigate
        *keys: Sequence of keys to traverse
        default: Default value if key path doesn't exist

    Returns:
        Value at key path or default if not found

    Example:
        >>> data = {"counts": {"items": 3}}
        >>> safe_get(data, "counts", "items")
        3
        >>> safe_get(data, "counts", "missing", default=0)
        0
    """
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
            if data is None:
                return default
        else:
            return default
    return data


__all__ = [
    "DATE_PATTERN",
    "parse_datetime",
    "utc_now",
    "utc_today",
    "format_iso",
    "utc_timestamp_slug",
    "to_calendar_date",
    "format_date",
    "generate_id",
    "is_valid_id",
    "normalize_text",
    "safe_get",
]
