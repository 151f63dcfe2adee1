"""Achievement ledger: immutable completion history.

Records are written when an item is completed and removed only when that same
completion is undone. Point values are captured at completion time, so later
edits to an item never rewrite history, and soft-deleting an item leaves its
records alone.
"""

from collections.abc import Mapping
from datetime import date, datetime

from waypointdb.logging import logger
from waypointdb.metrics import record_achievement_operation
from waypointdb.models import AchievementCreate, AchievementRecord
from waypointdb.repository import Repository
from waypointdb.storage import Bucket, Store
from waypointdb.utils import generate_id, utc_now
from waypointdb.validation import validate_day, validate_input


def _newest_first(records: list[AchievementRecord]) -> list[AchievementRecord]:
    return sorted(records, key=lambda record: record.achieved_at, reverse=True)


class AchievementLedger(Repository[AchievementRecord]):
    """Repository of :class:`AchievementRecord` rows.

    Args:
        store: Bucket store
        owner_id: Owner stamped on new records; None for local data
    """

    def __init__(self, store: Store, owner_id: str | None = None):
        super().__init__(store, Bucket.ACHIEVEMENTS, AchievementRecord)
        self.owner_id = owner_id

    def record_completion(
        self,
        item_id: str,
        points_earned: int,
        achieved_at: datetime | None = None,
    ) -> AchievementRecord:
        """Append a record for a completed item.

        Args:
            item_id: Completed item
            points_earned: Points to credit, copied by value
            achieved_at: Completion time (defaults to now)

        Returns:
            The stored record

        Raises:
            ValidationError: If ``item_id`` is not a UUID or points are negative
        """
        validated = validate_input(
            AchievementCreate,
            {"item_id": item_id, "points_earned": points_earned},
            entity="achievement",
        )
        now = utc_now()
        record = AchievementRecord(
            id=generate_id(),
            owner_id=self.owner_id,
            item_id=validated.item_id,
            points_earned=validated.points_earned,
            achieved_at=achieved_at or now,
            created_at=now,
        )
        self.create(record)
        record_achievement_operation("record")
        logger.debug(f"🏆 Recorded {record.points_earned} points for item {item_id}")
        return record

    def revoke_completion(self, achievement_id: str) -> bool:
        """Hard-delete a record; the item itself is never touched.

        Returns:
            True if a record was removed
        """
        removed = self.delete(achievement_id)
        if removed:
            record_achievement_operation("revoke")
        return removed

    def delete_for_item(self, item_id: str) -> int:
        """Remove every record for an item (used by permanent item deletion).

        Returns:
            Number of records removed
        """
        targets = [record.id for record in self.find_by(item_id=item_id)]
        removed = self.delete_many(targets)
        record_achievement_operation("purge", len(removed))
        return len(removed)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_all(self) -> list[AchievementRecord]:
        return _newest_first(self.get_all())

    def list_for_owner(self, owner_id: str | None) -> list[AchievementRecord]:
        """Get an owner's records, newest first (None selects local records)."""
        return _newest_first(self.find_by(owner_id=owner_id))

    def list_for_item(self, item_id: str) -> list[AchievementRecord]:
        return _newest_first(self.find_by(item_id=item_id))

    def latest_for_item(self, item_id: str) -> AchievementRecord | None:
        """Get the most recent record for an item, if any."""
        records = self.list_for_item(item_id)
        return records[0] if records else None

    def list_in_range(
        self,
        start: date | str,
        end: date | str,
        owner_id: str | None = None,
    ) -> list[AchievementRecord]:
        """Get an owner's records whose UTC achievement date is within ``[start, end]``."""
        first, last = validate_day(start, "start"), validate_day(end, "end")
        return _newest_first(
            self.filter(
                lambda record: record.owner_id == owner_id and first <= record.achieved_on <= last
            )
        )

    def sum_in_range(
        self,
        start: date | str,
        end: date | str,
        owner_id: str | None = None,
    ) -> int:
        """Sum ``points_earned`` for an owner between two dates, inclusive.

        Example:
            >>> ledger.sum_in_range("2024-01-01", "2024-01-31")
            130

        Raises:
            ValidationError: If either bound is not a real calendar date
        """
        return sum(record.points_earned for record in self.list_in_range(start, end, owner_id))

    def totals_by_date(self, owner_id: str | None = None) -> Mapping[date, int]:
        """Sum ``points_earned`` per UTC calendar date for an owner."""
        totals: dict[date, int] = {}
        for record in self.find_by(owner_id=owner_id):
            totals[record.achieved_on] = totals.get(record.achieved_on, 0) + record.points_earned
        return totals


__all__ = ["AchievementLedger"]
