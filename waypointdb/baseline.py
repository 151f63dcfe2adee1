"""Daily baseline tracker.

Each (owner, calendar date) earns a flat number of baseline points, stored as
at most one :class:`DailyBaselineRecord`. The uniqueness rule lives here: the
store has no constraints of its own.

A day's total is its baseline (0 when no record exists) plus the points of
every achievement whose UTC ``achieved_at`` falls on that date.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from waypointdb.config import settings
from waypointdb.ledger import AchievementLedger
from waypointdb.logging import logger
from waypointdb.models import DailyBaselineInput, DailyBaselineRecord
from waypointdb.repository import Repository
from waypointdb.storage import Bucket, Store
from waypointdb.utils import format_date, generate_id, to_calendar_date, utc_now, utc_today
from waypointdb.validation import validate_day, validate_input

DayLike = date | datetime | str


@dataclass(frozen=True)
class DayTotal:
    """Points breakdown for a single day."""

    day: date
    baseline_points: int
    achievement_points: int

    @property
    def total(self) -> int:
        return self.baseline_points + self.achievement_points


def _day_string(day: DayLike | None) -> str:
    if day is None:
        return format_date(utc_today())
    if isinstance(day, (date, datetime)):
        return format_date(to_calendar_date(day))
    return day


def _newest_first(records: list[DailyBaselineRecord]) -> list[DailyBaselineRecord]:
    return sorted(records, key=lambda record: record.date, reverse=True)


class DailyBaselineTracker(Repository[DailyBaselineRecord]):
    """Repository of :class:`DailyBaselineRecord` rows.

    Args:
        store: Bucket store
        ledger: Achievement ledger used for daily totals
        default_baseline: Points granted when none are given
            (defaults to ``settings.default_daily_baseline``)
    """

    def __init__(
        self,
        store: Store,
        ledger: AchievementLedger,
        default_baseline: int | None = None,
    ):
        super().__init__(store, Bucket.DAILY_POINTS, DailyBaselineRecord)
        self.ledger = ledger
        self.default_baseline = (
            default_baseline if default_baseline is not None else settings.default_daily_baseline
        )

    def _validate(self, day: DayLike | None, baseline_points: int | None) -> DailyBaselineInput:
        data: dict[str, object] = {"date": _day_string(day)}
        data["baseline_points"] = baseline_points if baseline_points is not None else self.default_baseline
        return validate_input(DailyBaselineInput, data, entity="daily baseline")

    # =========================================================================
    # Writes
    # =========================================================================

    def ensure_daily_baseline(
        self,
        day: DayLike | None = None,
        owner_id: str | None = None,
        baseline_points: int | None = None,
    ) -> DailyBaselineRecord:
        """Get or create the baseline record for a day (today by default).

        Calling this repeatedly for the same (owner, date) returns the same
        record and never adds a second row.

        Raises:
            ValidationError: If the date is not ``YYYY-MM-DD`` or points are negative
        """
        validated = self._validate(day, baseline_points)
        existing = self.get_for_date(validated.calendar_date, owner_id)
        if existing is not None:
            return existing

        record = DailyBaselineRecord(
            id=generate_id(),
            owner_id=owner_id,
            date=validated.calendar_date,
            baseline_points=validated.baseline_points,
            created_at=utc_now(),
        )
        self.create(record)
        logger.debug(f"Created daily baseline for {validated.date} ({record.baseline_points} points)")
        return record

    def update_baseline_points(
        self,
        day: DayLike,
        baseline_points: int,
        owner_id: str | None = None,
    ) -> DailyBaselineRecord:
        """Change a day's baseline, creating the record if it does not exist."""
        validated = self._validate(day, baseline_points)
        existing = self.get_for_date(validated.calendar_date, owner_id)
        if existing is None:
            return self.ensure_daily_baseline(validated.date, owner_id, validated.baseline_points)

        updated = existing.model_copy(update={"baseline_points": validated.baseline_points})
        self.update(updated)
        return updated

    def delete_record(self, day: DayLike, owner_id: str | None = None) -> bool:
        """Remove a day's record; False if there was none."""
        existing = self.get_for_date(self._validate(day, None).calendar_date, owner_id)
        return self.delete(existing.id) if existing else False

    # =========================================================================
    # Queries
    # =========================================================================

    def get_for_date(self, day: DayLike, owner_id: str | None = None) -> DailyBaselineRecord | None:
        target = validate_day(day)
        for record in self.get_all():
            if record.date == target and record.owner_id == owner_id:
                return record
        return None

    def list_for_owner(self, owner_id: str | None = None) -> list[DailyBaselineRecord]:
        """Get an owner's records, most recent date first."""
        return _newest_first(self.find_by(owner_id=owner_id))

    def list_in_range(
        self,
        start: DayLike,
        end: DayLike,
        owner_id: str | None = None,
    ) -> list[DailyBaselineRecord]:
        """Get an owner's records dated within ``[start, end]``, most recent first."""
        first, last = validate_day(start, "start"), validate_day(end, "end")
        return _newest_first(
            self.filter(lambda record: record.owner_id == owner_id and first <= record.date <= last)
        )

    def total_for_date(self, day: DayLike | None = None, owner_id: str | None = None) -> int:
        """Baseline (or 0) plus achievement points for one day.

        Raises:
            ValidationError: If ``day`` is not a real calendar date
        """
        target = validate_day(_day_string(day))
        record = self.get_for_date(target, owner_id)
        baseline = record.baseline_points if record else 0
        return baseline + self.ledger.sum_in_range(target, target, owner_id)

    def total_for_range(self, start: DayLike, end: DayLike, owner_id: str | None = None) -> int:
        """Baselines plus achievement points across ``[start, end]``.

        Achievements on days without a baseline record still count.
        """
        baselines = sum(record.baseline_points for record in self.list_in_range(start, end, owner_id))
        return baselines + self.ledger.sum_in_range(start, end, owner_id)

    def breakdown(self, start: DayLike, end: DayLike, owner_id: str | None = None) -> list[DayTotal]:
        """Per-day totals for every date in ``[start, end]``, oldest first."""
        first, last = validate_day(start, "start"), validate_day(end, "end")
        baselines = {record.date: record.baseline_points for record in self.list_in_range(first, last, owner_id)}
        achievements = self.ledger.totals_by_date(owner_id)

        days = []
        current = first
        while current <= last:
            days.append(
                DayTotal(
                    day=current,
                    baseline_points=baselines.get(current, 0),
                    achievement_points=achievements.get(current, 0),
                )
            )
            current += timedelta(days=1)
        return days


__all__ = ["DailyBaselineTracker", "DayTotal"]
