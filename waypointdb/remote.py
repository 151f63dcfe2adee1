"""In-memory remote account store.

Reference implementation of :class:`~waypointdb.interfaces.IRemoteStore`,
used by tests and by the CLI when no service client is configured. Rows are
kept per account and upserted by id.
"""

from collections.abc import Sequence

from waypointdb.logging import logger
from waypointdb.models import AchievementRecord, DailyBaselineRecord, Item


class InMemoryRemoteStore:
    """Dict-backed remote store.

    Args:
        items: Optional pre-existing remote items, grouped by their ``owner_id``
        fail_next: Number of upcoming ``bulk_upsert`` calls that raise
            ``ConnectionError`` before touching any row
    """

    def __init__(self, items: Sequence[Item] = (), fail_next: int = 0):
        self._items: dict[str, dict[str, Item]] = {}
        self._achievements: dict[str, dict[str, AchievementRecord]] = {}
        self._baselines: dict[str, dict[str, DailyBaselineRecord]] = {}
        self.fail_next = fail_next
        self.upsert_calls = 0

        for item in items:
            if item.owner_id is None:
                raise ValueError(f"Remote item {item.id} has no owner")
            self._items.setdefault(item.owner_id, {})[item.id] = item

    def list_items(self, owner_id: str) -> list[Item]:
        return list(self._items.get(owner_id, {}).values())

    def list_achievements(self, owner_id: str) -> list[AchievementRecord]:
        return list(self._achievements.get(owner_id, {}).values())

    def list_daily_baselines(self, owner_id: str) -> list[DailyBaselineRecord]:
        return list(self._baselines.get(owner_id, {}).values())

    def bulk_upsert(
        self,
        owner_id: str,
        items: Sequence[Item],
        achievements: Sequence[AchievementRecord],
        daily_baselines: Sequence[DailyBaselineRecord],
    ) -> None:
        """Insert or replace rows for an account.

        Raises:
            ConnectionError: While ``fail_next`` is positive
        """
        self.upsert_calls += 1
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ConnectionError("Remote store unavailable")

        for bucket, rows in (
            (self._items, items),
            (self._achievements, achievements),
            (self._baselines, daily_baselines),
        ):
            target = bucket.setdefault(owner_id, {})
            for row in rows:
                target[row.id] = row

        logger.debug(
            f"Upserted {len(items)} items, {len(achievements)} achievements, "
            f"{len(daily_baselines)} baselines for {owner_id}"
        )


__all__ = ["InMemoryRemoteStore"]
