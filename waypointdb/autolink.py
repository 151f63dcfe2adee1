"""Auto-link engine: groups of items sharing the same text.

A group is every active item whose text matches case-insensitively. Groups
are derived on demand from the text index and never persisted. The canonical
member is the oldest one (ties broken by storage order).

Example:
    >>> engine = AutoLinkEngine(ItemRepository(store))
    >>> group = engine.find_group("design")
    >>> canonical, linked = engine.resolve_canonical(group)
"""

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from waypointdb.config import settings
from waypointdb.items import ItemRepository
from waypointdb.logging import logger
from waypointdb.metrics import observe_autolink_lookup
from waypointdb.models import EnrichedItem, GroupOperationResult, Item, ItemUpdate, LinkedInstance
from waypointdb.utils import normalize_text
from waypointdb.validation import validate_input

ROOT_PARENT_TEXT = "(root)"

UpdateFn = Callable[[str, Mapping[str, Any] | ItemUpdate], Item | None]


class AutoLinkEngine:
    """Find, decorate and propagate changes across auto-link groups.

    Args:
        items: Item repository (owns the text index)
        update_fn: Function applying one item update; defaults to
            ``items.update``. The workspace passes a version that also keeps
            the achievement ledger in step with completion changes.
        warn_ms: Lookups slower than this are logged as warnings
    """

    def __init__(
        self,
        items: ItemRepository,
        update_fn: UpdateFn | None = None,
        warn_ms: float | None = None,
    ):
        self.items = items
        self.update_fn = update_fn or items.update
        self.warn_ms = warn_ms if warn_ms is not None else settings.autolink_warn_ms

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_group(self, text: str) -> list[Item]:
        """Get active items whose text matches ``text`` ignoring case, oldest first."""
        started = time.perf_counter()
        group = self.items.get_by_text(text)
        elapsed = time.perf_counter() - started

        observe_autolink_lookup(elapsed, len(self.items.index))
        if elapsed * 1000 > self.warn_ms:
            logger.warning(
                f"⚠️  Auto-link lookup took {elapsed * 1000:.1f}ms "
                f"(threshold {self.warn_ms:.0f}ms, {len(self.items.index)} distinct texts)"
            )
        return group

    @staticmethod
    def resolve_canonical(group: Sequence[Item]) -> tuple[Item, list[Item]]:
        """Split an ordered group into its canonical member and the rest.

        Raises:
            ValueError: If the group is empty
        """
        if not group:
            raise ValueError("Cannot determine canonical instance of an empty group")
        first, *rest = group
        return first, list(rest)

    # =========================================================================
    # Enrichment
    # =========================================================================

    def enrich(self, items: Sequence[Item]) -> list[EnrichedItem]:
        """Decorate items with their linked instances.

        Items without duplicates come back with ``linked_instances`` and
        ``is_canonical`` left unset.
        """
        groups: dict[str, list[Item]] = {}
        for item in items:
            key = normalize_text(item.text)
            if key not in groups:
                groups[key] = self.find_group(item.text)

        texts_by_id: dict[str, str] | None = None
        enriched = []
        for item in items:
            group = groups[normalize_text(item.text)]
            if len(group) <= 1 or all(member.id != item.id for member in group):
                enriched.append(EnrichedItem(**dict(item)))
                continue

            if texts_by_id is None:
                texts_by_id = {row.id: row.text for row in self.items.get_all()}

            canonical, _ = self.resolve_canonical(group)
            linked = [
                LinkedInstance(id=member.id, parent_text=self._parent_text(member, texts_by_id))
                for member in group
                if member.id != item.id
            ]
            enriched.append(
                EnrichedItem(**dict(item), linked_instances=linked, is_canonical=item.id == canonical.id)
            )
        return enriched

    @staticmethod
    def _parent_text(item: Item, texts_by_id: Mapping[str, str]) -> str:
        if item.parent_id is None:
            return ROOT_PARENT_TEXT
        return texts_by_id.get(item.parent_id, ROOT_PARENT_TEXT)

    # =========================================================================
    # Group Operations
    # =========================================================================

    def delete_group(self, item_id: str, delete_all: bool = False) -> GroupOperationResult:
        """Soft-delete one item, or every active member of its group.

        Returns:
            Count and ids actually deleted; zero when ``item_id`` is not an
            active item
        """
        item = self.items.get_by_id(item_id)
        if item is None:
            return GroupOperationResult()

        targets = self.find_group(item.text) if delete_all else [item]
        deleted = [target.id for target in targets if self.items.soft_delete(target.id) is not None]

        if delete_all:
            logger.info(f"Deleted {len(deleted)} linked instance(s) of item {item_id}")
        return GroupOperationResult(count=len(deleted), item_ids=deleted)

    def propagate_update(
        self,
        item_id: str,
        patch: Mapping[str, Any] | ItemUpdate,
        sync_all: bool = False,
    ) -> GroupOperationResult:
        """Update one item, or apply the same patch to every group member.

        Returns:
            Count and ids actually updated; zero when ``item_id`` is not an
            active item
        """
        validated = validate_input(ItemUpdate, patch, entity="item")
        item = self.items.get_by_id(item_id)
        if item is None:
            return GroupOperationResult()

        targets = self.find_group(item.text) if sync_all else [item]
        updated = [target.id for target in targets if self.update_fn(target.id, validated) is not None]

        if sync_all:
            logger.info(f"Synced update to {len(updated)} linked instance(s) of item {item_id}")
        return GroupOperationResult(count=len(updated), item_ids=updated)


__all__ = ["AutoLinkEngine", "ROOT_PARENT_TEXT"]
