"""Persisted migration state machine.

Transitions (per account)::

    pending -> in_progress -> completed
                           -> failed -> pending (reset)

The status bucket holds one record per account and survives both process
restarts and the local data wipe that may follow a successful migration. A
completed migration stays completed, which is what keeps a second run from
uploading the same data twice.
"""

from collections.abc import Iterable
from typing import Any

from waypointdb.errors import (
    MigrationAlreadyCompletedError,
    MigrationInProgressError,
    MigrationStateError,
)
from waypointdb.logging import logger
from waypointdb.models import (
    MigrationOptions,
    MigrationResult,
    MigrationState,
    MigrationStatusRecord,
    MigrationSummary,
)
from waypointdb.storage import Bucket, Store
from waypointdb.utils import generate_id, utc_now


class MigrationStatusTracker:
    """Read and advance migration status records.

    Args:
        store: Bucket store
    """

    def __init__(self, store: Store):
        self.store = store

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load(self) -> dict[str, Any]:
        return self.store.read_object(Bucket.MIGRATION_STATUS) or {}

    def _save(self, record: MigrationStatusRecord) -> MigrationStatusRecord:
        records = self._load()
        records[record.owner_id] = record.model_dump(mode="json")
        self.store.write_object(Bucket.MIGRATION_STATUS, records)
        return record

    def get(self, owner_id: str) -> MigrationStatusRecord | None:
        """Get the status record for an account, or None if there is none."""
        data = self._load().get(owner_id)
        if data is None:
            return None
        return MigrationStatusRecord.model_validate(data)

    def _require(self, owner_id: str, allowed: Iterable[MigrationState], action: str) -> MigrationStatusRecord:
        record = self.get(owner_id)
        if record is None:
            raise MigrationStateError(f"No migration record for account {owner_id}")
        allowed = tuple(allowed)
        if record.status not in allowed:
            raise MigrationStateError(
                f"Cannot {action} a migration that is {record.status} "
                f"(expected {' or '.join(str(state) for state in allowed)})"
            )
        return record

    # =========================================================================
    # Transitions
    # =========================================================================

    def initialize(self, owner_id: str, options: MigrationOptions | None = None) -> MigrationStatusRecord:
        """Create a fresh pending record.

        Raises:
            MigrationInProgressError: If a migration for the account is running
            MigrationAlreadyCompletedError: If the account was already migrated
        """
        existing = self.get(owner_id)
        if existing is not None:
            if existing.status == MigrationState.IN_PROGRESS:
                raise MigrationInProgressError(f"Migration is already in progress for account {owner_id}")
            if existing.status == MigrationState.COMPLETED:
                raise MigrationAlreadyCompletedError(f"Account {owner_id} has already been migrated")

        record = MigrationStatusRecord(
            migration_id=generate_id(),
            owner_id=owner_id,
            options=options or MigrationOptions(),
        )
        return self._save(record)

    def start(self, owner_id: str) -> MigrationStatusRecord:
        record = self._require(owner_id, [MigrationState.PENDING], "start")
        logger.info(f"🚀 Migration {record.migration_id} started")
        return self._save(
            record.model_copy(update={"status": MigrationState.IN_PROGRESS, "started_at": utc_now()})
        )

    def complete(self, owner_id: str, result: MigrationResult) -> MigrationStatusRecord:
        record = self._require(owner_id, [MigrationState.IN_PROGRESS], "complete")
        logger.success(f"✅ Migration {record.migration_id} completed")
        return self._save(
            record.model_copy(
                update={"status": MigrationState.COMPLETED, "completed_at": utc_now(), "result": result}
            )
        )

    def fail(self, owner_id: str, error: str) -> MigrationStatusRecord:
        record = self._require(owner_id, [MigrationState.IN_PROGRESS], "fail")
        logger.error(f"❌ Migration {record.migration_id} failed: {error}")
        return self._save(record.model_copy(update={"status": MigrationState.FAILED, "last_error": error}))

    def reset(self, owner_id: str) -> MigrationStatusRecord:
        """Return a failed migration to pending so it can be retried."""
        record = self._require(owner_id, [MigrationState.FAILED], "reset")
        return self._save(
            record.model_copy(
                update={
                    "status": MigrationState.PENDING,
                    "started_at": None,
                    "completed_at": None,
                    "last_error": None,
                    "result": None,
                }
            )
        )

    def clear(self, owner_id: str) -> bool:
        """Forget an account's record entirely; True if one existed."""
        records = self._load()
        if records.pop(owner_id, None) is None:
            return False
        self.store.write_object(Bucket.MIGRATION_STATUS, records)
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def is_completed(self, owner_id: str) -> bool:
        record = self.get(owner_id)
        return record is not None and record.status == MigrationState.COMPLETED

    def summary(self, owner_id: str) -> MigrationSummary | None:
        """Summarize an account's migration, including its duration when finished."""
        record = self.get(owner_id)
        if record is None:
            return None

        duration = None
        if record.started_at and record.completed_at:
            duration = (record.completed_at - record.started_at).total_seconds()

        result = record.result or MigrationResult()
        return MigrationSummary(
            status=record.status,
            items_migrated=result.items_migrated,
            achievements_migrated=result.achievements_migrated,
            daily_points_migrated=result.daily_points_migrated,
            duration_seconds=duration,
            errors=result.errors,
            warnings=result.warnings,
        )


__all__ = ["MigrationStatusTracker"]
