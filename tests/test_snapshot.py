"""Tests for snapshot export, validation and backup files."""

import json
from pathlib import Path

import pytest

from waypointdb.errors import ConsistencyError
from waypointdb.models import LOCAL_USER_ID, SNAPSHOT_VERSION, MigrationSnapshot
from waypointdb.snapshot import (
    BACKUP_PREFIX,
    backup_filename,
    ensure_valid_snapshot,
    export_snapshot,
    load_backup,
    validate_snapshot,
    write_backup,
)
from waypointdb.storage import Store
from waypointdb.workspace import Workspace


@pytest.fixture
def populated(workspace: Workspace) -> Workspace:
    """Workspace with a small tree, one completion and one baseline."""
    ship = workspace.create_item({"text": "Ship v1", "kind": "direction"})
    design = workspace.create_item({"text": "Design", "kind": "waypoint", "parent_id": ship.id})
    removed = workspace.create_item({"text": "Old idea", "kind": "step", "parent_id": design.id})
    workspace.set_completed(design.id, True)
    workspace.delete_item(removed.id)
    workspace.start_day("2024-01-15")
    return workspace


@pytest.fixture
def snapshot(populated: Workspace) -> MigrationSnapshot:
    return export_snapshot(populated.store)


class TestExport:
    """Tests for export_snapshot."""

    def test_exports_everything(self, snapshot: MigrationSnapshot):
        """Test soft-deleted items and every collection are exported."""
        assert snapshot.version == SNAPSHOT_VERSION
        assert len(snapshot.items) == 3
        assert any(item.is_deleted for item in snapshot.items)
        assert len(snapshot.achievements) == 1
        assert len(snapshot.daily_points) == 1
        assert snapshot.user.id == LOCAL_USER_ID
        assert (snapshot.counts.items, snapshot.counts.achievements, snapshot.counts.daily_points) == (3, 1, 1)

    def test_exported_snapshot_is_valid(self, snapshot: MigrationSnapshot):
        assert validate_snapshot(snapshot) == []

    def test_empty_store(self, store: Store):
        """Test an empty store exports an empty, valid snapshot."""
        snapshot = export_snapshot(store)

        assert snapshot.items == []
        assert snapshot.counts.items == 0
        assert validate_snapshot(snapshot) == []


class TestValidation:
    """Tests for validate_snapshot."""

    def test_not_an_object(self):
        """Test non-object payloads are rejected outright."""
        issues = validate_snapshot(["not", "an", "object"])

        assert [issue.code for issue in issues] == ["invalid_format"]

    def test_missing_fields(self):
        """Test every missing field is reported."""
        codes = {issue.code for issue in validate_snapshot({})}

        assert {
            "missing_version",
            "missing_exported_at",
            "invalid_items",
            "invalid_achievements",
            "invalid_daily_points",
            "invalid_user",
            "invalid_counts",
        } <= codes

    def test_unsupported_version(self, snapshot: MigrationSnapshot):
        payload = snapshot.to_payload()
        payload["version"] = 2

        assert [issue.code for issue in validate_snapshot(payload)] == ["unsupported_version"]

    def test_count_mismatch(self, snapshot: MigrationSnapshot):
        """Test a truncated collection is detected."""
        payload = snapshot.to_payload()
        payload["items"] = payload["items"][:1]

        issues = validate_snapshot(payload)

        assert [issue.code for issue in issues] == ["items_count_mismatch"]
        assert issues[0].message == "Items count mismatch: expected 3, got 1"

    def test_ensure_valid_raises(self, snapshot: MigrationSnapshot):
        """Test issues are raised as a ConsistencyError for the stage."""
        payload = snapshot.to_payload()
        payload["dailyPoints"] = []

        with pytest.raises(ConsistencyError) as exc_info:
            ensure_valid_snapshot(payload, stage="import")

        assert exc_info.value.stage == "import"
        assert exc_info.value.codes == ["daily_points_count_mismatch"]


class TestBackupFiles:
    """Tests for writing and loading backups."""

    def test_write_and_load(self, snapshot: MigrationSnapshot, tmp_path: Path):
        """Test a backup file restores the same snapshot."""
        path = write_backup(snapshot, tmp_path / "backups")

        assert path.parent == tmp_path / "backups"
        assert path.name == backup_filename(snapshot)
        assert path.name.startswith(BACKUP_PREFIX)
        assert load_backup(path) == snapshot

    def test_file_uses_camel_case_envelope(self, snapshot: MigrationSnapshot, tmp_path: Path):
        data = json.loads(write_backup(snapshot, tmp_path).read_text(encoding="utf-8"))

        assert {"version", "exportedAt", "items", "achievements", "dailyPoints", "user", "counts"} <= set(data)

    def test_load_from_text(self, snapshot: MigrationSnapshot):
        """Test JSON text is accepted directly."""
        assert load_backup(json.dumps(snapshot.to_payload())) == snapshot

    def test_invalid_json(self):
        """Test unparseable content is reported as invalid JSON."""
        with pytest.raises(ConsistencyError) as exc_info:
            load_backup("{not json")

        assert exc_info.value.codes == ["invalid_json"]

    def test_malformed_rows(self, snapshot: MigrationSnapshot):
        """Test a row that fails validation is reported."""
        payload = snapshot.to_payload()
        payload["items"][0]["points"] = -1

        with pytest.raises(ConsistencyError) as exc_info:
            load_backup(json.dumps(payload))

        assert exc_info.value.stage == "import"
        assert set(exc_info.value.codes) == {"invalid_row"}
