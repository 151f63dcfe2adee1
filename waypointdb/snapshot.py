"""Snapshot export and backup files.

A snapshot is a full, versioned copy of the local store: every item
(soft-deleted ones included), every achievement, every daily baseline record
and the user profile, plus declared counts so a truncated file is detected.

Example:
    >>> snapshot = export_snapshot(store)
    >>> path = write_backup(snapshot)
    >>> restored = load_backup(path)
    >>> restored.counts.items == snapshot.counts.items
    True
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from waypointdb.config import settings
from waypointdb.errors import ConsistencyError, ConsistencyIssue
from waypointdb.logging import logger
from waypointdb.models import (
    SNAPSHOT_VERSION,
    AchievementRecord,
    DailyBaselineRecord,
    Item,
    MigrationSnapshot,
    SnapshotCounts,
)
from waypointdb.profile import ProfileManager
from waypointdb.repository import Repository
from waypointdb.storage import Bucket, Store
from waypointdb.utils import safe_get, utc_now, utc_timestamp_slug

BACKUP_PREFIX = "waypoint-backup-"

# (payload key, issue code stem, label used in messages)
_COLLECTIONS = (
    ("items", "items", "Items"),
    ("achievements", "achievements", "Achievements"),
    ("dailyPoints", "daily_points", "Daily points"),
)


# =============================================================================
# Export
# =============================================================================


def export_snapshot(store: Store) -> MigrationSnapshot:
    """Export every local entity into a snapshot.

    Args:
        store: Store to read

    Returns:
        Snapshot with counts equal to the exported collection sizes
    """
    items = Repository(store, Bucket.ITEMS, Item).get_all()
    achievements = Repository(store, Bucket.ACHIEVEMENTS, AchievementRecord).get_all()
    daily_points = Repository(store, Bucket.DAILY_POINTS, DailyBaselineRecord).get_all()

    snapshot = MigrationSnapshot(
        version=SNAPSHOT_VERSION,
        exported_at=utc_now(),
        items=items,
        achievements=achievements,
        daily_points=daily_points,
        user=ProfileManager(store).get(),
        counts=SnapshotCounts(
            items=len(items),
            achievements=len(achievements),
            daily_points=len(daily_points),
        ),
    )
    logger.info(
        f"📦 Exported {len(items)} items, {len(achievements)} achievements, "
        f"{len(daily_points)} daily records"
    )
    return snapshot


# =============================================================================
# Validation
# =============================================================================


def validate_snapshot(data: MigrationSnapshot | Mapping[str, Any] | Any) -> list[ConsistencyIssue]:
    """Check a snapshot's shape and declared counts.

    Accepts either a :class:`MigrationSnapshot` or the raw decoded JSON of a
    backup file.

    Returns:
        Every issue found; empty when the snapshot is valid
    """
    payload = data.to_payload() if isinstance(data, MigrationSnapshot) else data
    if not isinstance(payload, Mapping):
        return [ConsistencyIssue("invalid_format", "Export data must be an object")]

    issues: list[ConsistencyIssue] = []

    version = payload.get("version")
    if not version:
        issues.append(ConsistencyIssue("missing_version", "Missing version field"))
    elif version != SNAPSHOT_VERSION:
        issues.append(ConsistencyIssue("unsupported_version", f"Unsupported export version: {version}"))

    if not payload.get("exportedAt"):
        issues.append(ConsistencyIssue("missing_exported_at", "Missing exportedAt field"))

    for key, code, _ in _COLLECTIONS:
        if not isinstance(payload.get(key), list):
            issues.append(ConsistencyIssue(f"invalid_{code}", f"Missing or invalid {key} array"))

    if not isinstance(payload.get("user"), Mapping):
        issues.append(ConsistencyIssue("invalid_user", "Missing or invalid user object"))

    if not isinstance(payload.get("counts"), Mapping):
        issues.append(ConsistencyIssue("invalid_counts", "Missing or invalid counts object"))

    for key, code, label in _COLLECTIONS:
        rows = payload.get(key)
        declared = safe_get(payload, "counts", key)
        if isinstance(rows, list) and declared != len(rows):
            issues.append(
                ConsistencyIssue(
                    f"{code}_count_mismatch",
                    f"{label} count mismatch: expected {declared}, got {len(rows)}",
                )
            )

    return issues


def ensure_valid_snapshot(data: MigrationSnapshot | Mapping[str, Any], stage: str = "export") -> None:
    """Raise ``ConsistencyError`` if :func:`validate_snapshot` finds anything."""
    issues = validate_snapshot(data)
    if issues:
        raise ConsistencyError(stage, issues)


# =============================================================================
# Backup Files
# =============================================================================


def backup_filename(snapshot: MigrationSnapshot) -> str:
    """File name for a snapshot, e.g. ``waypoint-backup-2024-01-15T10-30-00Z.json``."""
    return f"{BACKUP_PREFIX}{utc_timestamp_slug(snapshot.exported_at)}.json"


def write_backup(snapshot: MigrationSnapshot, directory: Path | None = None) -> Path:
    """Write a snapshot to a pretty-printed JSON backup file.

    Args:
        snapshot: Snapshot to write
        directory: Target directory (defaults to ``settings.backup_dir``)

    Returns:
        Path of the written file
    """
    directory = directory or settings.backup_dir
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(snapshot)
    path.write_text(json.dumps(snapshot.to_payload(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"💾 Backup written to {path}")
    return path


def load_backup(source: str | Path) -> MigrationSnapshot:
    """Parse and validate a backup.

    Args:
        source: Path to a backup file, or its JSON text

    Returns:
        Parsed snapshot

    Raises:
        ConsistencyError: If the content is not JSON, fails shape or count
            checks, or contains malformed rows
    """
    text = source.read_text(encoding="utf-8") if isinstance(source, Path) else source

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConsistencyError("import", [ConsistencyIssue("invalid_json", f"Invalid JSON: {e}")]) from e

    ensure_valid_snapshot(data, stage="import")

    try:
        return MigrationSnapshot.model_validate(data)
    except PydanticValidationError as e:
        issues = [
            ConsistencyIssue("invalid_row", f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
            for err in e.errors()
        ]
        raise ConsistencyError("import", issues) from e


__all__ = [
    "BACKUP_PREFIX",
    "export_snapshot",
    "validate_snapshot",
    "ensure_valid_snapshot",
    "backup_filename",
    "write_backup",
    "load_backup",
]
