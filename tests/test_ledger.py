"""Tests for the achievement ledger."""

from datetime import date

import pytest

from waypointdb.errors import ValidationError
from waypointdb.ledger import AchievementLedger
from waypointdb.storage import Store
from waypointdb.utils import generate_id


@pytest.fixture
def ledger(store: Store) -> AchievementLedger:
    return AchievementLedger(store)


class TestRecordCompletion:
    """Tests for writing and revoking records."""

    def test_record(self, ledger: AchievementLedger, days):
        """Test a record captures the points by value."""
        item_id = generate_id()

        record = ledger.record_completion(item_id, 25, achieved_at=days(0))

        assert record.item_id == item_id
        assert record.points_earned == 25
        assert record.owner_id is None
        assert record.achieved_on == date(2024, 1, 15)
        assert ledger.list_all() == [record]

    def test_owner_stamped(self, store: Store):
        """Test records carry the ledger owner."""
        ledger = AchievementLedger(store, owner_id="acct-1")

        assert ledger.record_completion(generate_id(), 5).owner_id == "acct-1"

    def test_invalid_input(self, ledger: AchievementLedger):
        """Test item IDs must be UUIDs and points non-negative."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.record_completion("not-a-uuid", -1)

        assert exc_info.value.entity == "achievement"
        assert set(exc_info.value.fields) == {"item_id", "points_earned"}
        assert ledger.list_all() == []

    def test_revoke(self, ledger: AchievementLedger):
        """Test revoking removes only that record."""
        item_id = generate_id()
        first = ledger.record_completion(item_id, 5)
        second = ledger.record_completion(item_id, 5)

        assert ledger.revoke_completion(first.id) is True
        assert ledger.revoke_completion(first.id) is False
        assert ledger.list_for_item(item_id) == [second]

    def test_delete_for_item(self, ledger: AchievementLedger):
        """Test purging an item's history."""
        item_id, other_id = generate_id(), generate_id()
        ledger.record_completion(item_id, 5)
        ledger.record_completion(item_id, 5)
        kept = ledger.record_completion(other_id, 5)

        assert ledger.delete_for_item(item_id) == 2
        assert ledger.list_all() == [kept]


class TestQueries:
    """Tests for ordering and range sums."""

    def test_newest_first(self, ledger: AchievementLedger, days):
        """Test listings are ordered by achievement time, newest first."""
        item_id = generate_id()
        old = ledger.record_completion(item_id, 5, achieved_at=days(0))
        new = ledger.record_completion(item_id, 10, achieved_at=days(3))

        assert ledger.list_for_item(item_id) == [new, old]
        assert ledger.latest_for_item(item_id) == new
        assert ledger.latest_for_item(generate_id()) is None

    def test_sum_in_range_inclusive(self, ledger: AchievementLedger, days):
        """Test both range ends are included."""
        for offset, points in ((0, 5), (1, 25), (2, 100), (3, 7)):
            ledger.record_completion(generate_id(), points, achieved_at=days(offset))

        assert ledger.sum_in_range("2024-01-15", "2024-01-17") == 130
        assert ledger.sum_in_range(date(2024, 1, 18), date(2024, 1, 18)) == 7
        assert ledger.sum_in_range("2024-02-01", "2024-02-28") == 0

    def test_sum_uses_strict_owner(self, store: Store, days):
        """Test local records are not counted for an account and vice versa."""
        AchievementLedger(store).record_completion(generate_id(), 5, achieved_at=days(0))
        AchievementLedger(store, owner_id="acct-1").record_completion(generate_id(), 25, achieved_at=days(0))
        ledger = AchievementLedger(store)

        assert ledger.sum_in_range("2024-01-15", "2024-01-15") == 5
        assert ledger.sum_in_range("2024-01-15", "2024-01-15", owner_id="acct-1") == 25
        assert len(ledger.list_for_owner("acct-1")) == 1

    def test_totals_by_date(self, ledger: AchievementLedger, days):
        """Test per-day sums."""
        ledger.record_completion(generate_id(), 5, achieved_at=days(0))
        ledger.record_completion(generate_id(), 25, achieved_at=days(0))
        ledger.record_completion(generate_id(), 100, achieved_at=days(1))

        assert ledger.totals_by_date() == {date(2024, 1, 15): 30, date(2024, 1, 16): 100}

    @pytest.mark.parametrize("bad_date", ["2024-13-01", "2024-02-30", "not-a-date"])
    def test_malformed_range_rejected(self, ledger: AchievementLedger, bad_date: str):
        """Test malformed bounds raise a field-addressable error."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.sum_in_range(bad_date, "2024-01-31")

        assert exc_info.value.fields == ["start"]
        assert exc_info.value.issues[0].constraint == "calendar_date"

        with pytest.raises(ValidationError) as exc_info:
            ledger.list_in_range("2024-01-01", bad_date)

        assert exc_info.value.fields == ["end"]
