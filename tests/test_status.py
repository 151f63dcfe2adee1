"""Tests for the persisted migration state machine."""

import pytest

from waypointdb.errors import (
    MigrationAlreadyCompletedError,
    MigrationInProgressError,
    MigrationStateError,
)
from waypointdb.models import ConflictStrategy, MigrationOptions, MigrationResult, MigrationState
from waypointdb.status import MigrationStatusTracker
from waypointdb.storage import Store

OWNER = "acct-1"


@pytest.fixture
def tracker(store: Store) -> MigrationStatusTracker:
    return MigrationStatusTracker(store)


class TestTransitions:
    """Tests for legal transitions."""

    def test_happy_path(self, tracker: MigrationStatusTracker):
        """Test pending -> in_progress -> completed."""
        options = MigrationOptions(conflict_strategy=ConflictStrategy.KEEP_CLOUD)
        pending = tracker.initialize(OWNER, options)
        assert pending.status == MigrationState.PENDING
        assert pending.options == options

        started = tracker.start(OWNER)
        assert started.status == MigrationState.IN_PROGRESS
        assert started.started_at is not None
        assert started.migration_id == pending.migration_id

        completed = tracker.complete(OWNER, MigrationResult(items_migrated=3))
        assert completed.status == MigrationState.COMPLETED
        assert completed.completed_at is not None
        assert tracker.is_completed(OWNER)
        assert tracker.get(OWNER) == completed

    def test_fail_and_reset(self, tracker: MigrationStatusTracker):
        """Test failed -> pending clears the attempt."""
        tracker.initialize(OWNER)
        tracker.start(OWNER)

        failed = tracker.fail(OWNER, "Remote store unavailable")
        assert failed.status == MigrationState.FAILED
        assert failed.last_error == "Remote store unavailable"

        reset = tracker.reset(OWNER)
        assert reset.status == MigrationState.PENDING
        assert reset.started_at is None
        assert reset.last_error is None
        assert reset.migration_id == failed.migration_id

    def test_reinitialize_after_failure(self, tracker: MigrationStatusTracker):
        """Test a failed attempt may be replaced by a new one."""
        first = tracker.initialize(OWNER)
        tracker.start(OWNER)
        tracker.fail(OWNER, "boom")

        second = tracker.initialize(OWNER)

        assert second.status == MigrationState.PENDING
        assert second.migration_id != first.migration_id

    def test_accounts_are_independent(self, tracker: MigrationStatusTracker):
        tracker.initialize(OWNER)
        tracker.start(OWNER)

        assert tracker.initialize("acct-2").status == MigrationState.PENDING
        assert tracker.get(OWNER).status == MigrationState.IN_PROGRESS  # type: ignore[union-attr]

    def test_survives_new_tracker(self, tracker: MigrationStatusTracker, store: Store):
        """Test status is read back from storage."""
        tracker.initialize(OWNER)
        tracker.start(OWNER)

        assert MigrationStatusTracker(store).get(OWNER).status == MigrationState.IN_PROGRESS  # type: ignore[union-attr]

    def test_clear(self, tracker: MigrationStatusTracker):
        tracker.initialize(OWNER)

        assert tracker.clear(OWNER) is True
        assert tracker.clear(OWNER) is False
        assert tracker.get(OWNER) is None


class TestIllegalTransitions:
    """Tests for rejected transitions."""

    def test_in_progress_blocks_initialize(self, tracker: MigrationStatusTracker):
        tracker.initialize(OWNER)
        tracker.start(OWNER)

        with pytest.raises(MigrationInProgressError):
            tracker.initialize(OWNER)

    def test_completed_blocks_initialize(self, tracker: MigrationStatusTracker):
        """Test a completed migration can never be re-run."""
        tracker.initialize(OWNER)
        tracker.start(OWNER)
        tracker.complete(OWNER, MigrationResult())

        with pytest.raises(MigrationAlreadyCompletedError):
            tracker.initialize(OWNER)

    def test_missing_record(self, tracker: MigrationStatusTracker):
        with pytest.raises(MigrationStateError, match="No migration record"):
            tracker.start(OWNER)

    def test_wrong_state(self, tracker: MigrationStatusTracker):
        """Test each transition checks the current state."""
        tracker.initialize(OWNER)

        with pytest.raises(MigrationStateError, match="Cannot complete a migration that is pending"):
            tracker.complete(OWNER, MigrationResult())

        with pytest.raises(MigrationStateError):
            tracker.reset(OWNER)

        tracker.start(OWNER)
        with pytest.raises(MigrationStateError):
            tracker.start(OWNER)


class TestSummary:
    """Tests for status summaries."""

    def test_no_record(self, tracker: MigrationStatusTracker):
        assert tracker.summary(OWNER) is None

    def test_completed_summary(self, tracker: MigrationStatusTracker):
        """Test counts and duration of a finished migration."""
        tracker.initialize(OWNER)
        tracker.start(OWNER)
        tracker.complete(OWNER, MigrationResult(items_migrated=3, achievements_migrated=1, warnings=["w"]))

        summary = tracker.summary(OWNER)

        assert summary is not None
        assert summary.status == MigrationState.COMPLETED
        assert summary.items_migrated == 3
        assert summary.warnings == ["w"]
        assert summary.duration_seconds is not None and summary.duration_seconds >= 0

    def test_pending_summary(self, tracker: MigrationStatusTracker):
        tracker.initialize(OWNER)

        summary = tracker.summary(OWNER)

        assert summary is not None
        assert summary.duration_seconds is None
        assert summary.items_migrated == 0
