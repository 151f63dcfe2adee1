"""Workspace facade.

Wires the store, repositories, auto-link engine, achievement ledger, daily
baselines and profile together so callers get one object per workspace.
Completion changes made through the workspace keep the achievement ledger in
step: every actual flip to completed records an achievement worth the item's
current points, and every flip back revokes the most recent one.

Example:
    >>> workspace = Workspace()
    >>> ship = workspace.create_item({"text": "Ship v1", "kind": "direction"})
    >>> workspace.set_completed(ship.id, True)
    >>> workspace.daily_total()
    100
"""

from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Any, Optional

from waypointdb.autolink import AutoLinkEngine
from waypointdb.baseline import DailyBaselineTracker
from waypointdb.config import Settings, settings as default_settings
from waypointdb.interfaces import IRemoteStore
from waypointdb.items import ItemRepository
from waypointdb.ledger import AchievementLedger
from waypointdb.logging import logger
from waypointdb.models import (
    DailyBaselineRecord,
    EnrichedItem,
    GroupOperationResult,
    Item,
    ItemCreate,
    ItemUpdate,
)
from waypointdb.pipeline import MigrationPipeline
from waypointdb.profile import ProfileManager
from waypointdb.status import MigrationStatusTracker
from waypointdb.storage import Store, create_store
from waypointdb.validation import validate_input


class Workspace:
    """One user's local workspace.

    Args:
        store: Bucket store (built from settings when None)
        settings: Settings to use (defaults to the global settings)
    """

    def __init__(self, store: Optional[Store] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.store    = store or create_store(self.settings)
        self.profile  = ProfileManager(self.store)

        profile       = self.profile.get()
        self.owner_id = None if profile.is_local else profile.id

        self.items    = ItemRepository(
            self.store,
            default_points=self.profile.default_points,
            owner_id=self.owner_id,
        )
        self.ledger   = AchievementLedger(self.store, owner_id=self.owner_id)
        self.baseline = DailyBaselineTracker(
            self.store,
            self.ledger,
            default_baseline=self.settings.default_daily_baseline,
        )
        self.tracker  = MigrationStatusTracker(self.store)
        self.engine   = AutoLinkEngine(
            self.items,
            update_fn=self._apply_update,
            warn_ms=self.settings.autolink_warn_ms,
        )

    def close(self) -> None:
        """Release the backend (SQLite engines are disposed)."""
        close = getattr(self.store.backend, "close", None)
        if close is not None:
            close()

    # =========================================================================
    # Items
    # =========================================================================

    def create_item(self, data: Mapping[str, Any] | ItemCreate) -> Item:
        return self.items.create(data)

    def get_item(self, item_id: str, include_deleted: bool = False) -> Item | None:
        return self.items.get_by_id(item_id, include_deleted=include_deleted)

    def _apply_update(self, item_id: str, patch: Mapping[str, Any] | ItemUpdate) -> Item | None:
        """Update one item and mirror completion flips into the ledger."""
        before = self.items.get_by_id(item_id, include_deleted=True)
        updated = self.items.update(item_id, patch)
        if updated is None or before is None or before.completed == updated.completed:
            return updated

        if updated.completed:
            self.ledger.record_completion(updated.id, updated.points, achieved_at=updated.completed_at)
        else:
            latest = self.ledger.latest_for_item(updated.id)
            if latest is not None:
                self.ledger.revoke_completion(latest.id)
            else:
                logger.warning(f"No achievement to revoke for item {updated.id}")
        return updated

    def update_item(
        self,
        item_id: str,
        patch: Mapping[str, Any] | ItemUpdate,
        sync_all: bool = False,
    ) -> GroupOperationResult:
        """Update an item, optionally every linked instance too.

        Raises:
            ValidationError: If the patch is malformed
        """
        return self.engine.propagate_update(item_id, validate_input(ItemUpdate, patch, entity="item"), sync_all)

    def set_completed(self, item_id: str, completed: bool, sync_all: bool = False) -> GroupOperationResult:
        """Toggle completion, recording or revoking achievements on each flip."""
        return self.update_item(item_id, {"completed": completed}, sync_all=sync_all)

    def delete_item(self, item_id: str, delete_all: bool = False) -> GroupOperationResult:
        """Soft-delete an item, optionally every linked instance too."""
        return self.engine.delete_group(item_id, delete_all=delete_all)

    def restore_item(self, item_id: str) -> Item | None:
        return self.items.restore(item_id)

    def purge_item(self, item_id: str, purge_achievements: bool = False) -> list[str]:
        """Permanently remove an item and its descendants.

        Args:
            item_id: Item to remove
            purge_achievements: Also remove the ledger rows of every removed item

        Returns:
            IDs removed
        """
        removed = self.items.hard_delete(item_id)
        if purge_achievements:
            purged = sum(self.ledger.delete_for_item(removed_id) for removed_id in removed)
            logger.info(f"Removed {purged} achievement(s) for purged items")
        return removed

    # =========================================================================
    # Tree Reads
    # =========================================================================

    def children(self, parent_id: str) -> list[EnrichedItem]:
        """Active children of an item, by position, with auto-link data."""
        return self.engine.enrich(self.items.get_children(parent_id))

    def roots(self) -> list[EnrichedItem]:
        """Active root items, by position, with auto-link data."""
        return self.engine.enrich(self.items.get_roots())

    # =========================================================================
    # Points
    # =========================================================================

    def start_day(self, day: Optional[date | str] = None) -> DailyBaselineRecord:
        """Grant the day's baseline (once) using the profile's baseline setting."""
        return self.baseline.ensure_daily_baseline(day, self.owner_id, self.profile.daily_baseline())

    def daily_total(self, day: Optional[date | str] = None) -> int:
        return self.baseline.total_for_date(day, self.owner_id)

    # =========================================================================
    # Migration
    # =========================================================================

    def migration_pipeline(self, remote: IRemoteStore, backup_dir: Optional[Path] = None) -> MigrationPipeline:
        """Build a pipeline migrating this workspace into ``remote``."""
        return MigrationPipeline(self.store, remote, tracker=self.tracker, backup_dir=backup_dir)


__all__ = ["Workspace"]
