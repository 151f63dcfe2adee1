"""Migration pipeline orchestration.

This module moves a local workspace into a remote account:
1. Export: Snapshot every local entity and validate declared counts
2. Backup: Optionally write the snapshot to a JSON file
3. Remap: Re-own rows by the account, verifying ids and timestamps
4. Detect: Classify local items against the account's remote items
5. Resolve: Apply one conflict strategy to the whole batch
6. Load: Bulk upsert the surviving rows and mark the migration completed

Features:
- At most one successful run per account (persisted status record)
- Failed attempts are recorded and can be reset and retried
- Children and achievements follow re-keyed or replaced items
- Local rows kept after migration mirror what the account now holds
"""

import time
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from waypointdb.conflicts import describe_conflict, detect_conflicts, filter_non_conflicting, resolve_all
from waypointdb.interfaces import IRemoteStore
from waypointdb.logging import clear_operation_context, logger, set_operation_context
from waypointdb.metrics import record_migration
from waypointdb.models import (
    AchievementRecord,
    ConflictRecord,
    DailyBaselineRecord,
    Item,
    MigrationOptions,
    MigrationResult,
    MigrationSnapshot,
    MigrationState,
    MigrationStatusRecord,
    ResolutionOutcome,
    SnapshotCounts,
)
from waypointdb.profile import ProfileManager
from waypointdb.remap import remap_owner
from waypointdb.repository import Repository
from waypointdb.snapshot import ensure_valid_snapshot, export_snapshot, write_backup
from waypointdb.status import MigrationStatusTracker
from waypointdb.storage import Bucket, Store


class MigrationOutcome(BaseModel):
    """What a pipeline run produced.

    Attributes:
        status: Final state of the attempt (completed or failed)
        record: Persisted status record after the run
        result: Counts and warnings, None unless completed
        unresolved_conflicts: Conflicts awaiting manual review
        backup_path: Backup file written before remapping, if any
    """

    model_config = ConfigDict(frozen=True)

    status: MigrationState
    record: MigrationStatusRecord
    result: Optional[MigrationResult] = None
    unresolved_conflicts: list[ConflictRecord] = Field(default_factory=list)
    backup_path: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.status == MigrationState.COMPLETED


class MigrationPipeline:
    """Orchestrates a local-to-remote migration.

    Example:
        >>> pipeline = MigrationPipeline(store, remote)
        >>> outcome = pipeline.run("account-123")
        >>> outcome.result.items_migrated
        12
    """

    def __init__(
        self,
        store: Store,
        remote: IRemoteStore,
        tracker: Optional[MigrationStatusTracker] = None,
        backup_dir: Optional[Path] = None,
    ):
        """Initialize the pipeline.

        Args:
            store: Local store to migrate
            remote: Target account store
            tracker: Status tracker (defaults to one over ``store``)
            backup_dir: Backup directory (defaults to ``settings.backup_dir``)
        """
        self.store      = store
        self.remote     = remote
        self.tracker    = tracker or MigrationStatusTracker(store)
        self.backup_dir = backup_dir

    def run(self, owner_id: str, options: Optional[MigrationOptions] = None) -> MigrationOutcome:
        """Migrate the local store into ``owner_id``'s account.

        Args:
            owner_id: Remote account id
            options: Run options (defaults to ``keep_newest`` with a backup)

        Returns:
            Outcome of the attempt; a ``manual_review`` run with conflicts
            returns a failed outcome listing them

        Raises:
            MigrationInProgressError: If a migration is already running
            MigrationAlreadyCompletedError: If the account was already migrated
            Exception: Anything raised by a stage, after the attempt is
                marked failed
        """
        options = options or MigrationOptions()
        record = self.tracker.initialize(owner_id, options)
        set_operation_context(operation_id=record.migration_id, owner_id=owner_id, operation="migration")
        try:
            return self._attempt(owner_id, options)
        finally:
            clear_operation_context()

    def _attempt(self, owner_id: str, options: MigrationOptions) -> MigrationOutcome:
        started = time.perf_counter()
        conflict_types: list[str] = []

        try:
            self.tracker.start(owner_id)
            logger.info(f"🚀 Starting migration with strategy {options.conflict_strategy}")

            snapshot = export_snapshot(self.store)
            ensure_valid_snapshot(snapshot)

            backup_path = write_backup(snapshot, self.backup_dir) if options.create_backup else None

            remapped = remap_owner(snapshot, owner_id)
            detection = detect_conflicts(remapped.items, self.remote.list_items(owner_id))
            conflict_types = [conflict.conflict_type.value for conflict in detection.conflicts]
            if detection.requires_resolution:
                logger.warning(f"⚠️  Detected {detection.total_conflicts} conflicts")

            resolution = resolve_all(detection.conflicts, options.conflict_strategy)

            if resolution.unresolved_conflicts:
                message = (
                    f"{len(resolution.unresolved_conflicts)} conflicts require manual review; "
                    "reset the migration and rerun with a conflict strategy"
                )
                record = self.tracker.fail(owner_id, message)
                record_migration("failed", time.perf_counter() - started, conflict_types)
                return MigrationOutcome(
                    status=MigrationState.FAILED,
                    record=record,
                    unresolved_conflicts=resolution.unresolved_conflicts,
                    backup_path=backup_path,
                )

            upload = self._build_upload(remapped, detection.conflicts, resolution)
            self.remote.bulk_upsert(owner_id, upload.items, upload.achievements, upload.daily_points)
            result = MigrationResult(
                items_migrated=len(upload.items),
                achievements_migrated=len(upload.achievements),
                daily_points_migrated=len(upload.daily_points),
                warnings=[describe_conflict(conflict) for conflict in detection.conflicts],
            )
            record = self.tracker.complete(owner_id, result)

        except Exception as e:
            logger.error(f"❌ Migration failed: {e}")
            self._record_failure(owner_id, str(e))
            record_migration("failed", time.perf_counter() - started, conflict_types)
            raise

        record_migration("completed", time.perf_counter() - started, conflict_types)

        if options.delete_local_after_migration:
            self.store.clear_local_data()
        else:
            self._adopt_locally(upload, detection.conflicts)
            ProfileManager(self.store).assign_owner(owner_id)

        logger.success(
            f"✅ Migrated {result.items_migrated} items, {result.achievements_migrated} achievements, "
            f"{result.daily_points_migrated} daily records"
        )
        return MigrationOutcome(
            status=MigrationState.COMPLETED,
            record=record,
            result=result,
            backup_path=backup_path,
        )

    def _record_failure(self, owner_id: str, error: str) -> None:
        """Mark the attempt failed without masking the error that caused it."""
        try:
            self.tracker.fail(owner_id, error)
        except Exception as e:
            logger.error(f"❌ Could not record migration failure for {owner_id}: {e}")

    def _build_upload(
        self,
        snapshot: MigrationSnapshot,
        conflicts: list[ConflictRecord],
        resolution: ResolutionOutcome,
    ) -> MigrationSnapshot:
        """Apply the resolution to the remapped snapshot.

        Re-keyed and discarded local items carry their children and
        achievements along to the surviving id.
        """
        redirect = {**resolution.id_replacements, **resolution.id_renames}

        items = [
            item.model_copy(update={"parent_id": redirect[item.parent_id]})
            if item.parent_id in redirect
            else item
            for item in filter_non_conflicting(snapshot.items, conflicts) + resolution.resolved_items
        ]
        achievements = [
            achievement.model_copy(update={"item_id": redirect[achievement.item_id]})
            if achievement.item_id in redirect
            else achievement
            for achievement in snapshot.achievements
        ]
        return snapshot.model_copy(
            update={
                "items": items,
                "achievements": achievements,
                "counts": SnapshotCounts(
                    items=len(items),
                    achievements=len(achievements),
                    daily_points=len(snapshot.daily_points),
                ),
            }
        )

    def _adopt_locally(self, upload: MigrationSnapshot, conflicts: list[ConflictRecord]) -> None:
        """Mirror the account's view of the migrated rows in the local store.

        Local rows become exactly what was uploaded, plus every conflicting
        remote item the upload left in place, so redirected parents and
        achievements still resolve locally.
        """
        uploaded = {item.id for item in upload.items}
        kept_remote: dict[str, Item] = {}
        for conflict in conflicts:
            if conflict.cloud_item.id not in uploaded:
                kept_remote.setdefault(conflict.cloud_item.id, conflict.cloud_item)

        Repository(self.store, Bucket.ITEMS, Item).replace_all(upload.items + list(kept_remote.values()))
        Repository(self.store, Bucket.ACHIEVEMENTS, AchievementRecord).replace_all(upload.achievements)
        Repository(self.store, Bucket.DAILY_POINTS, DailyBaselineRecord).replace_all(upload.daily_points)


__all__ = ["MigrationOutcome", "MigrationPipeline"]
