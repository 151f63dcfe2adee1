"""Unit tests for the item repository."""

import json

import pytest

from waypointdb.errors import ValidationError
from waypointdb.items import ItemRepository
from waypointdb.models import Item, ItemKind
from waypointdb.repository import Repository
from waypointdb.storage import MemoryBackend, Store
from waypointdb.utils import generate_id


@pytest.fixture
def items(store: Store) -> ItemRepository:
    return ItemRepository(store)


class TestCreate:
    """Tests for ItemRepository.create."""

    def test_defaults_from_kind(self, items: ItemRepository):
        """Test points default from the kind table."""
        direction = items.create({"text": "Ship v1", "kind": "direction"})
        waypoint = items.create({"text": "Design", "kind": "waypoint", "parent_id": direction.id})
        step = items.create({"text": "Sketch", "kind": "step", "parent_id": waypoint.id})

        assert (direction.points, waypoint.points, step.points) == (100, 25, 5)
        assert direction.position == 0
        assert direction.completed is False
        assert direction.completed_at is None
        assert direction.created_at == direction.updated_at
        assert items.get_by_id(step.id) == step

    def test_explicit_points(self, items: ItemRepository):
        """Test explicit points override the default."""
        item = items.create({"text": "Design", "kind": "waypoint", "points": 40, "position": 3})

        assert item.points == 40
        assert item.position == 3

    def test_custom_point_table(self, store: Store):
        """Test a point table supplied as a callable is read at create time."""
        table = {ItemKind.DIRECTION: 1, ItemKind.WAYPOINT: 2, ItemKind.STEP: 3}
        repo = ItemRepository(store, default_points=lambda: table)

        assert repo.create({"text": "Sketch", "kind": "step"}).points == 3

        table[ItemKind.STEP] = 9
        assert repo.create({"text": "Sketch", "kind": "step"}).points == 9

    def test_owner_stamped(self, store: Store):
        """Test new items carry the repository owner."""
        repo = ItemRepository(store, owner_id="acct-1")

        assert repo.create({"text": "A", "kind": "step"}).owner_id == "acct-1"

    def test_invalid_input_writes_nothing(self, items: ItemRepository, backend: MemoryBackend):
        """Test rejected input leaves storage untouched."""
        with pytest.raises(ValidationError) as exc_info:
            items.create({"text": "", "kind": "step", "points": -5})

        assert set(exc_info.value.fields) == {"text", "points"}
        assert backend.get("waypoint:items") is None

    def test_text_too_long(self, items: ItemRepository):
        """Test the text length limit."""
        with pytest.raises(ValidationError) as exc_info:
            items.create({"text": "x" * 5001, "kind": "step"})

        assert exc_info.value.fields == ["text"]


class TestUpdate:
    """Tests for ItemRepository.update."""

    def test_partial_update(self, items: ItemRepository):
        """Test unspecified fields keep their values."""
        item = items.create({"text": "Design", "kind": "waypoint"})

        updated = items.update(item.id, {"text": "Design v2"})

        assert updated is not None
        assert updated.text == "Design v2"
        assert updated.kind == ItemKind.WAYPOINT
        assert updated.points == 25
        assert updated.created_at == item.created_at
        assert updated.updated_at >= item.updated_at
        assert items.get_by_id(item.id) == updated

    def test_writers_patching_different_fields_merge(self, store: Store):
        """Test a later writer keeps fields an earlier writer changed but it did not touch."""
        first, second = ItemRepository(store), ItemRepository(store)
        item = first.create({"text": "A", "kind": "step"})

        first.update(item.id, {"text": "B"})
        second.update(item.id, {"position": 4})

        stored = ItemRepository(store).get_by_id(item.id)
        assert stored is not None
        assert (stored.text, stored.position) == ("B", 4)

    def test_completion_stamps_timestamp(self, items: ItemRepository):
        """Test completing sets completed_at and un-completing clears it."""
        item = items.create({"text": "Design", "kind": "waypoint"})

        done = items.update(item.id, {"completed": True})
        assert done is not None and done.completed and done.completed_at is not None

        again = items.update(item.id, {"completed": True})
        assert again is not None and again.completed_at == done.completed_at

        undone = items.update(item.id, {"completed": False})
        assert undone is not None and not undone.completed and undone.completed_at is None

    def test_unknown_item(self, items: ItemRepository):
        """Test updating an unknown item returns None."""
        assert items.update(generate_id(), {"text": "x"}) is None

    def test_invalid_patch(self, items: ItemRepository):
        """Test malformed patches are rejected."""
        item = items.create({"text": "Design", "kind": "waypoint"})

        with pytest.raises(ValidationError):
            items.update(item.id, {"points": "many"})

        with pytest.raises(ValidationError):
            items.update(item.id, {"text": None})

    def test_move_to_root(self, items: ItemRepository):
        """Test parent_id=None moves an item to the root."""
        parent = items.create({"text": "Ship v1", "kind": "direction"})
        child = items.create({"text": "Design", "kind": "waypoint", "parent_id": parent.id})

        moved = items.update(child.id, {"parent_id": None})

        assert moved is not None and moved.is_root

    def test_cycle_rejected(self, items: ItemRepository):
        """Test an item cannot move under itself or a descendant."""
        root = items.create({"text": "Ship v1", "kind": "direction"})
        child = items.create({"text": "Design", "kind": "waypoint", "parent_id": root.id})
        grandchild = items.create({"text": "Sketch", "kind": "step", "parent_id": child.id})

        for new_parent in (root.id, grandchild.id):
            with pytest.raises(ValidationError) as exc_info:
                items.update(root.id, {"parent_id": new_parent})
            assert exc_info.value.for_field("parent_id")[0].constraint == "no_cycle"

        assert items.get_by_id(root.id).is_root  # type: ignore[union-attr]


class TestDeletion:
    """Tests for soft delete, restore and hard delete."""

    def test_soft_delete_keeps_children(self, items: ItemRepository):
        """Test soft delete affects only the item itself."""
        parent = items.create({"text": "Ship v1", "kind": "direction"})
        child = items.create({"text": "Design", "kind": "waypoint", "parent_id": parent.id})

        deleted = items.soft_delete(parent.id)

        assert deleted is not None and deleted.is_deleted
        assert items.get_by_id(parent.id) is None
        assert items.get_by_id(parent.id, include_deleted=True) == deleted
        assert items.get_by_id(child.id) == child

    def test_soft_delete_twice(self, items: ItemRepository):
        """Test deleting an already-deleted item returns it unchanged."""
        item = items.create({"text": "Design", "kind": "waypoint"})
        first = items.soft_delete(item.id)

        assert items.soft_delete(item.id) == first

    def test_soft_delete_unknown(self, items: ItemRepository):
        assert items.soft_delete(generate_id()) is None

    def test_restore(self, items: ItemRepository):
        """Test restore clears deleted_at."""
        item = items.create({"text": "Design", "kind": "waypoint"})
        items.soft_delete(item.id)

        restored = items.restore(item.id)

        assert restored is not None and not restored.is_deleted
        assert items.get_by_id(item.id) == restored
        assert items.restore(generate_id()) is None

    def test_hard_delete_cascades(self, items: ItemRepository):
        """Test hard delete removes every descendant."""
        root = items.create({"text": "Ship v1", "kind": "direction"})
        child = items.create({"text": "Design", "kind": "waypoint", "parent_id": root.id})
        grandchild = items.create({"text": "Sketch", "kind": "step", "parent_id": child.id})
        other = items.create({"text": "Other", "kind": "direction"})
        items.soft_delete(grandchild.id)

        removed = items.hard_delete(root.id)

        assert set(removed) == {root.id, child.id, grandchild.id}
        assert items.get_all() == [other]
        assert items.hard_delete(root.id) == []


class TestReads:
    """Tests for tree and text reads."""

    def test_children_and_roots_by_position(self, items: ItemRepository):
        """Test siblings are ordered by position, stably."""
        root = items.create({"text": "Ship v1", "kind": "direction"})
        b = items.create({"text": "B", "kind": "waypoint", "parent_id": root.id, "position": 2})
        a = items.create({"text": "A", "kind": "waypoint", "parent_id": root.id, "position": 1})
        c = items.create({"text": "C", "kind": "waypoint", "parent_id": root.id, "position": 2})
        items.soft_delete(c.id)

        assert [item.id for item in items.get_children(root.id)] == [a.id, b.id]
        assert [item.id for item in items.get_children(root.id, include_deleted=True)] == [a.id, b.id, c.id]
        assert items.get_roots() == [root]

    def test_descendants_include_deleted(self, items: ItemRepository):
        """Test descendants cover the whole subtree."""
        root = items.create({"text": "Ship v1", "kind": "direction"})
        child = items.create({"text": "Design", "kind": "waypoint", "parent_id": root.id})
        grandchild = items.create({"text": "Sketch", "kind": "step", "parent_id": child.id})
        items.soft_delete(child.id)

        assert {item.id for item in items.descendants(root.id)} == {child.id, grandchild.id}

    def test_get_by_text_case_insensitive(self, items: ItemRepository):
        """Test text lookup ignores case and skips deleted items."""
        first = items.create({"text": "Design", "kind": "waypoint"})
        second = items.create({"text": "DESIGN", "kind": "step"})
        deleted = items.create({"text": "design", "kind": "step"})
        items.soft_delete(deleted.id)

        assert [item.id for item in items.get_by_text("design")] == [first.id, second.id]
        assert items.get_by_text("nothing") == []

    def test_get_all_active(self, items: ItemRepository):
        item = items.create({"text": "A", "kind": "step"})
        items.soft_delete(items.create({"text": "B", "kind": "step"}).id)

        assert items.get_all_active() == [item]


class TestTextIndexFreshness:
    """Tests for keeping the text index in step with storage."""

    def test_incremental_updates_avoid_rebuilds(self, items: ItemRepository):
        """Test writes through the repository keep the index current."""
        items.create({"text": "Design", "kind": "waypoint"})
        items.get_by_text("design")
        rebuilds = items.index.rebuilds

        second = items.create({"text": "design", "kind": "step"})
        renamed = items.update(second.id, {"text": "Review"})

        assert [item.id for item in items.get_by_text("review")] == [renamed.id]  # type: ignore[union-attr]
        assert len(items.get_by_text("design")) == 1
        assert items.index.rebuilds == rebuilds

    def test_external_write_triggers_rebuild(self, store: Store):
        """Test a write from another context is picked up on the next lookup."""
        local = ItemRepository(store)
        other_tab = ItemRepository(store)
        local.create({"text": "Design", "kind": "waypoint"})
        assert len(local.get_by_text("design")) == 1

        other_tab.create({"text": "DESIGN", "kind": "step"})

        assert len(local.get_by_text("design")) == 2

    def test_raw_external_edit_triggers_rebuild(self, items: ItemRepository, backend: MemoryBackend):
        """Test direct edits of the bucket are picked up."""
        item = items.create({"text": "Design", "kind": "waypoint"})
        items.get_by_text("design")

        rows = json.loads(backend.get("waypoint:items"))  # type: ignore[arg-type]
        rows[0]["text"] = "Review"
        backend.set("waypoint:items", json.dumps(rows))

        assert items.get_by_text("design") == []
        assert [found.id for found in items.get_by_text("review")] == [item.id]

    def test_write_after_external_change_invalidates(self, store: Store):
        """Test a write over an externally changed bucket forces a rebuild."""
        local = ItemRepository(store)
        other_tab = ItemRepository(store)
        local.create({"text": "Design", "kind": "waypoint"})
        local.get_by_text("design")

        other_tab.create({"text": "design", "kind": "step"})
        local.create({"text": "Review", "kind": "step"})

        assert len(local.get_by_text("design")) == 2
        assert len(local.get_by_text("review")) == 1

    def test_stored_rows_parse_back(self, items: ItemRepository, store: Store):
        """Test stored rows reload identically through a fresh repository."""
        item = items.create({"text": "Design", "kind": "waypoint"})

        assert Repository(store, items.bucket, Item).get(item.id) == item
