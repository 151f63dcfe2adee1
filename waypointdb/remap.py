"""Owner remapping for migration.

Local rows are owned by nobody (``None``) or by the ``"local-user"``
placeholder. Before upload every row is re-owned by the remote account, and
the result is checked against the original so that no id or timestamp drifts
on the way.
"""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from waypointdb.errors import ConsistencyError, ConsistencyIssue
from waypointdb.logging import logger
from waypointdb.models import LOCAL_USER_ID, MigrationSnapshot
from waypointdb.utils import format_date, to_calendar_date

LOCAL_OWNERS = frozenset({None, LOCAL_USER_ID})

_TIMESTAMP_FIELDS = {
    "items": ("created_at", "updated_at", "completed_at", "deleted_at"),
    "achievements": ("achieved_at", "created_at"),
    "daily_points": ("date", "created_at"),
}

_LABELS = {"items": "Item", "achievements": "Achievement", "daily_points": "Daily points"}


def normalize_date_format(value: str | date | datetime) -> str:
    """Normalize a date or timestamp to its UTC ``YYYY-MM-DD`` form.

    Example:
        >>> normalize_date_format("2024-01-15T23:30:00-05:00")
        '2024-01-16'

    Raises:
        ValueError: If ``value`` is not a date
    """
    try:
        return format_date(to_calendar_date(value))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date string: {value}") from e


def remap_owner(snapshot: MigrationSnapshot, owner_id: str) -> MigrationSnapshot:
    """Re-own every local row by ``owner_id``.

    Rows already owned by ``owner_id`` are kept as they are.

    Returns:
        A new snapshot; the input is not modified

    Raises:
        ConsistencyError: If a row belongs to a different account, or if ids
            or timestamps changed during remapping
    """
    foreign = [
        ConsistencyIssue(
            "foreign_owner",
            f"{_LABELS[name]} {row.id} belongs to another account ({row.owner_id})",
        )
        for name in _TIMESTAMP_FIELDS
        for row in getattr(snapshot, name)
        if row.owner_id not in LOCAL_OWNERS and row.owner_id != owner_id
    ]
    if foreign:
        raise ConsistencyError("remap", foreign)

    remapped = snapshot.model_copy(
        update={
            "items": [item.model_copy(update={"owner_id": owner_id}) for item in snapshot.items],
            "achievements": [a.model_copy(update={"owner_id": owner_id}) for a in snapshot.achievements],
            "daily_points": [
                record.model_copy(
                    update={"owner_id": owner_id, "date": to_calendar_date(normalize_date_format(record.date))}
                )
                for record in snapshot.daily_points
            ],
            "user": snapshot.user.model_copy(update={"id": owner_id}),
        }
    )

    issues = verify_id_preservation(snapshot, remapped) + verify_timestamp_preservation(snapshot, remapped)
    if issues:
        raise ConsistencyError("remap", issues)

    logger.info(f"Remapped {len(remapped.items)} items to owner {owner_id}")
    return remapped


def verify_id_preservation(original: MigrationSnapshot, remapped: MigrationSnapshot) -> list[ConsistencyIssue]:
    """Compare ids position by position across every collection."""
    issues = []
    for name, label in _LABELS.items():
        before: Sequence[Any] = getattr(original, name)
        after: Sequence[Any] = getattr(remapped, name)
        if len(before) != len(after):
            issues.append(
                ConsistencyIssue("count_changed", f"{label} count mismatch: {len(before)} vs {len(after)}")
            )
            continue
        for index, (old, new) in enumerate(zip(before, after)):
            if old.id != new.id:
                issues.append(
                    ConsistencyIssue("id_changed", f"{label} id mismatch at index {index}: {old.id} vs {new.id}")
                )
    return issues


def verify_timestamp_preservation(
    original: MigrationSnapshot, remapped: MigrationSnapshot
) -> list[ConsistencyIssue]:
    """Compare every timestamp (and baseline date) position by position."""
    issues = []
    for name, fields in _TIMESTAMP_FIELDS.items():
        for old, new in zip(getattr(original, name), getattr(remapped, name)):
            for field in fields:
                if getattr(old, field) != getattr(new, field):
                    issues.append(
                        ConsistencyIssue("timestamp_changed", f"{_LABELS[name]} {old.id} {field} mismatch")
                    )
    return issues


__all__ = [
    "LOCAL_OWNERS",
    "normalize_date_format",
    "remap_owner",
    "verify_id_preservation",
    "verify_timestamp_preservation",
]
