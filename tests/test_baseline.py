"""Tests for daily baselines and point totals."""

from datetime import date

import pytest

from waypointdb.baseline import DailyBaselineTracker, DayTotal
from waypointdb.errors import ValidationError
from waypointdb.ledger import AchievementLedger
from waypointdb.storage import Store
from waypointdb.utils import generate_id, utc_today


@pytest.fixture
def ledger(store: Store) -> AchievementLedger:
    return AchievementLedger(store)


@pytest.fixture
def tracker(store: Store, ledger: AchievementLedger) -> DailyBaselineTracker:
    return DailyBaselineTracker(store, ledger, default_baseline=10)


class TestEnsureDailyBaseline:
    """Tests for creating baseline records."""

    def test_idempotent(self, tracker: DailyBaselineTracker):
        """Test repeated calls return the same record."""
        first = tracker.ensure_daily_baseline("2024-01-15")
        second = tracker.ensure_daily_baseline("2024-01-15", baseline_points=50)

        assert second == first
        assert first.baseline_points == 10
        assert tracker.count() == 1

    def test_defaults_to_today(self, tracker: DailyBaselineTracker):
        """Test omitting the date uses today's UTC date."""
        record = tracker.ensure_daily_baseline()

        assert record.date == utc_today()

    def test_accepts_dates(self, tracker: DailyBaselineTracker):
        """Test date objects are accepted."""
        record = tracker.ensure_daily_baseline(date(2024, 2, 29), baseline_points=3)

        assert record.date == date(2024, 2, 29)
        assert record.baseline_points == 3

    def test_per_owner(self, tracker: DailyBaselineTracker):
        """Test each owner gets their own record for a date."""
        local = tracker.ensure_daily_baseline("2024-01-15")
        remote = tracker.ensure_daily_baseline("2024-01-15", owner_id="acct-1")

        assert local.id != remote.id
        assert tracker.count() == 2

    @pytest.mark.parametrize("bad_date", ["2024/01/15", "2024-13-01", "yesterday"])
    def test_invalid_date(self, tracker: DailyBaselineTracker, bad_date: str):
        """Test malformed dates are rejected before anything is written."""
        with pytest.raises(ValidationError) as exc_info:
            tracker.ensure_daily_baseline(bad_date)

        assert exc_info.value.fields == ["date"]
        assert tracker.count() == 0

    def test_negative_points(self, tracker: DailyBaselineTracker):
        with pytest.raises(ValidationError):
            tracker.ensure_daily_baseline("2024-01-15", baseline_points=-1)


class TestBaselineEdits:
    """Tests for changing and removing baselines."""

    def test_update_existing(self, tracker: DailyBaselineTracker):
        """Test updating keeps the record identity."""
        record = tracker.ensure_daily_baseline("2024-01-15")

        updated = tracker.update_baseline_points("2024-01-15", 20)

        assert updated.id == record.id
        assert tracker.get_for_date("2024-01-15").baseline_points == 20  # type: ignore[union-attr]

    def test_update_creates_missing(self, tracker: DailyBaselineTracker):
        """Test updating a day without a record creates one."""
        record = tracker.update_baseline_points("2024-01-15", 20)

        assert record.baseline_points == 20
        assert tracker.count() == 1

    def test_delete_record(self, tracker: DailyBaselineTracker):
        tracker.ensure_daily_baseline("2024-01-15")

        assert tracker.delete_record("2024-01-15") is True
        assert tracker.delete_record("2024-01-15") is False


class TestTotals:
    """Tests for daily and ranged totals."""

    def test_total_for_date(self, tracker: DailyBaselineTracker, ledger: AchievementLedger, days):
        """Test the total is baseline plus that day's achievements."""
        tracker.ensure_daily_baseline("2024-01-15")
        ledger.record_completion(generate_id(), 25, achieved_at=days(0))
        ledger.record_completion(generate_id(), 5, achieved_at=days(1))

        assert tracker.total_for_date("2024-01-15") == 35
        assert tracker.total_for_date(date(2024, 1, 16)) == 5
        assert tracker.total_for_date("2024-01-20") == 0

    def test_total_for_range(self, tracker: DailyBaselineTracker, ledger: AchievementLedger, days):
        """Test achievements count even on days without a baseline."""
        tracker.ensure_daily_baseline("2024-01-15")
        tracker.ensure_daily_baseline("2024-01-16")
        ledger.record_completion(generate_id(), 100, achieved_at=days(2))

        assert tracker.total_for_range("2024-01-15", "2024-01-17") == 120

    def test_range_listing_newest_first(self, tracker: DailyBaselineTracker):
        """Test baseline listings are ordered by date descending."""
        for day in ("2024-01-15", "2024-01-17", "2024-01-16"):
            tracker.ensure_daily_baseline(day)

        dates = [record.date.isoformat() for record in tracker.list_in_range("2024-01-15", "2024-01-16")]

        assert dates == ["2024-01-16", "2024-01-15"]
        assert len(tracker.list_for_owner()) == 3

    def test_breakdown(self, tracker: DailyBaselineTracker, ledger: AchievementLedger, days):
        """Test every day in the range is reported, oldest first."""
        tracker.ensure_daily_baseline("2024-01-15")
        ledger.record_completion(generate_id(), 25, achieved_at=days(1))

        breakdown = tracker.breakdown("2024-01-15", "2024-01-17")

        assert breakdown == [
            DayTotal(day=date(2024, 1, 15), baseline_points=10, achievement_points=0),
            DayTotal(day=date(2024, 1, 16), baseline_points=0, achievement_points=25),
            DayTotal(day=date(2024, 1, 17), baseline_points=0, achievement_points=0),
        ]
        assert [day.total for day in breakdown] == [10, 25, 0]

    @pytest.mark.parametrize("bad_date", ["2024-13-01", "2024-02-30", "not-a-date"])
    def test_malformed_dates_rejected(self, tracker: DailyBaselineTracker, bad_date: str):
        """Test every date query rejects malformed dates with a field-addressable error."""
        with pytest.raises(ValidationError) as exc_info:
            tracker.total_for_date(bad_date)
        assert exc_info.value.fields == ["date"]

        with pytest.raises(ValidationError) as exc_info:
            tracker.total_for_range(bad_date, "2024-01-01")
        assert exc_info.value.fields == ["start"]

        with pytest.raises(ValidationError) as exc_info:
            tracker.breakdown("2024-01-01", bad_date)
        assert exc_info.value.fields == ["end"]

        with pytest.raises(ValidationError):
            tracker.get_for_date(bad_date)
