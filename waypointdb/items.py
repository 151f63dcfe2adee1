"""Item repository: CRUD, soft delete and hierarchy queries.

Soft deletion only ever touches the targeted row. The hard-delete path is the
one place a removal cascades to descendants.

Example:
    >>> repo = ItemRepository(store)
    >>> direction = repo.create({"text": "Ship v1", "kind": "direction"})
    >>> step = repo.create({"text": "Design", "kind": "step", "parent_id": direction.id})
    >>> [child.text for child in repo.get_children(direction.id)]
    ['Design']
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from waypointdb.index import TextIndex
from waypointdb.logging import logger
from waypointdb.metrics import record_item_operation
from waypointdb.models import DEFAULT_POINTS, Item, ItemCreate, ItemKind, ItemUpdate
from waypointdb.repository import Repository
from waypointdb.storage import Bucket, Store
from waypointdb.utils import generate_id, utc_now
from waypointdb.validation import field_error, validate_input

PointTable = Mapping[ItemKind, int]


class ItemRepository(Repository[Item]):
    """Repository for Directions, Waypoints and Steps.

    Args:
        store: Bucket store
        default_points: Kind -> points table, or a callable returning one
            (lets user preferences change defaults without rebuilding the repository)
        owner_id: Owner stamped on new items; None for local data
        index: Text index to maintain (a fresh one by default)
    """

    def __init__(
        self,
        store: Store,
        default_points: PointTable | Callable[[], PointTable] | None = None,
        owner_id: str | None = None,
        index: TextIndex | None = None,
    ):
        super().__init__(store, Bucket.ITEMS, Item)
        self.default_points = default_points
        self.owner_id = owner_id
        self.index = index or TextIndex()

    def points_for(self, kind: ItemKind) -> int:
        """Get the default point value for a new item of ``kind``."""
        table = self.default_points() if callable(self.default_points) else self.default_points
        return (table or DEFAULT_POINTS)[ItemKind(kind)]

    def _after_write(self, items: Iterable[Item]) -> None:
        # Incremental maintenance is only safe when nothing else changed the bucket since the index was built
        if self.index.is_current(self.last_read_payload) and self.last_payload is not None:
            self.index.apply(items, self.last_payload)
        else:
            self.index.invalidate()

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, data: Mapping[str, Any] | ItemCreate) -> Item:  # type: ignore[override]
        """Validate and append a new item.

        Args:
            data: Item fields (``text``, ``kind``, optional ``parent_id``,
                ``position`` and ``points``)

        Returns:
            The stored item

        Raises:
            ValidationError: If any field is malformed
        """
        validated = validate_input(ItemCreate, data, entity="item")
        now = utc_now()
        item = Item(
            id=generate_id(),
            owner_id=self.owner_id,
            text=validated.text,
            kind=validated.kind,
            parent_id=validated.parent_id,
            position=validated.position if validated.position is not None else 0,
            points=validated.points if validated.points is not None else self.points_for(validated.kind),
            created_at=now,
            updated_at=now,
        )
        super().create(item)
        self._after_write([item])
        record_item_operation("create")
        logger.debug(f"Created {item.kind} {item.id}")
        return item

    def update(self, item_id: str, patch: Mapping[str, Any] | ItemUpdate) -> Item | None:  # type: ignore[override]
        """Apply a partial update.

        ``completed=True`` on an incomplete item stamps ``completed_at``;
        ``completed=False`` clears it; every field not named in ``patch`` keeps
        its persisted value.

        Returns:
            The updated item, or None if ``item_id`` is unknown

        Raises:
            ValidationError: If the patch is malformed or would create a cycle
        """
        validated = validate_input(ItemUpdate, patch, entity="item")
        changes = validated.changes()

        current = self.get_by_id(item_id, include_deleted=True)
        if current is None:
            return None

        new_parent = changes.get("parent_id")
        if new_parent is not None and (
            new_parent == item_id or new_parent in {d.id for d in self.descendants(item_id)}
        ):
            raise field_error(
                "item",
                "parent_id",
                "no_cycle",
                "An item cannot be moved under itself or one of its descendants",
            )

        now = utc_now()
        completed_at = current.completed_at
        if "completed" in changes:
            if changes["completed"] and not current.completed:
                completed_at = now
            elif not changes["completed"]:
                completed_at = None

        updated = current.model_copy(update={**changes, "completed_at": completed_at, "updated_at": now})
        written = self.update_many([updated])
        if not written:
            return None
        self._after_write(written)
        record_item_operation("update")
        return updated

    def soft_delete(self, item_id: str) -> Item | None:
        """Mark one item deleted; children and every other row are untouched.

        Deleting an already-deleted item returns it unchanged.

        Returns:
            The deleted item, or None if ``item_id`` is unknown
        """
        current = self.get_by_id(item_id, include_deleted=True)
        if current is None:
            return None
        if current.is_deleted:
            return current

        now = utc_now()
        deleted = current.model_copy(update={"deleted_at": now, "updated_at": now})
        if not self.update_many([deleted]):
            return None
        self._after_write([deleted])
        record_item_operation("soft_delete")
        logger.debug(f"Soft-deleted item {item_id}")
        return deleted

    def restore(self, item_id: str) -> Item | None:
        """Clear ``deleted_at``; None if ``item_id`` is unknown."""
        current = self.get_by_id(item_id, include_deleted=True)
        if current is None:
            return None

        restored = current.model_copy(update={"deleted_at": None, "updated_at": utc_now()})
        if not self.update_many([restored]):
            return None
        self._after_write([restored])
        record_item_operation("restore")
        return restored

    def hard_delete(self, item_id: str) -> list[str]:
        """Permanently remove an item and all of its descendants.

        Returns:
            IDs removed (empty if ``item_id`` is unknown)
        """
        if self.get_by_id(item_id, include_deleted=True) is None:
            return []

        targets = [item_id] + [item.id for item in self.descendants(item_id)]
        removed = self.delete_many(targets)
        self.index.invalidate()
        record_item_operation("hard_delete", len(removed))
        logger.info(f"🗑️  Permanently deleted {len(removed)} item(s) under {item_id}")
        return removed

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, item_id: str, include_deleted: bool = False) -> Item | None:
        item = self.get(item_id)
        if item is None or (item.is_deleted and not include_deleted):
            return None
        return item

    def get_all_active(self) -> list[Item]:
        return [item for item in self.get_all() if not item.is_deleted]

    def get_children(self, parent_id: str, include_deleted: bool = False) -> list[Item]:
        """Get direct children ordered by ``position`` (stable)."""
        return self._siblings(lambda item: item.parent_id == parent_id, include_deleted)

    def get_roots(self, include_deleted: bool = False) -> list[Item]:
        """Get top-level items ordered by ``position`` (stable)."""
        return self._siblings(lambda item: item.parent_id is None, include_deleted)

    def _siblings(self, predicate: Callable[[Item], bool], include_deleted: bool) -> list[Item]:
        matches = [
            item
            for item in self.get_all()
            if predicate(item) and (include_deleted or not item.is_deleted)
        ]
        return sorted(matches, key=lambda item: item.position)

    def descendants(self, item_id: str) -> list[Item]:
        """Get every descendant of ``item_id``, including soft-deleted rows."""
        by_parent: dict[str, list[Item]] = {}
        for item in self.get_all():
            if item.parent_id is not None:
                by_parent.setdefault(item.parent_id, []).append(item)

        found: list[Item] = []
        seen = {item_id}
        frontier = [item_id]
        while frontier:
            children = by_parent.get(frontier.pop(), [])
            for child in children:
                if child.id not in seen:
                    seen.add(child.id)
                    found.append(child)
                    frontier.append(child.id)
        return found

    def get_by_text(self, text: str) -> list[Item]:
        """Get active items whose text equals ``text`` ignoring case, oldest first."""
        raw = self.store.read_raw(self.bucket)
        self.index.ensure_current(raw, lambda: self.parse(self.store.parse_rows(self.bucket, raw)))
        return self.index.lookup(text)


__all__ = ["ItemRepository"]
