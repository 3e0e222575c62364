"""Tests for the backup store."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import pytest

from fixgate.core.errors import RollbackFailure
from fixgate.core.models import utcnow
from fixgate.fix.backup import BackupStore


@pytest.fixture
def store(tmp_path: Path) -> BackupStore:
    return BackupStore(tmp_path / ".fixgate" / "backups")


class TestCapture:
    def test_captures_existing_file(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_bytes(b"const a = 1;\r\n")

        backup = store.capture(target)

        assert backup.existed_before is True
        assert backup.captured_content == b"const a = 1;\r\n"
        assert backup.backup_file is not None
        assert backup.backup_file.read_bytes() == b"const a = 1;\r\n"
        assert backup.backup_file.name.endswith("-app.js")

    def test_records_absent_file(self, store: BackupStore, tmp_path: Path):
        backup = store.capture(tmp_path / "new.js")

        assert backup.existed_before is False
        assert backup.backup_file is None
        assert backup.creates_file is True

    def test_manifest_written(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("x")
        backup = store.capture(target)

        manifest = json.loads((store.backup_dir / "manifest.json").read_text())
        assert [e["backup_id"] for e in manifest] == [backup.backup_id]

    def test_same_name_same_millisecond_does_not_collide(self, store: BackupStore, tmp_path: Path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "app.js").write_text("a")
        (tmp_path / "b" / "app.js").write_text("b")

        first = store.capture(tmp_path / "a" / "app.js")
        second = store.capture(tmp_path / "b" / "app.js")

        assert first.backup_file != second.backup_file
        assert first.backup_file.read_text() == "a"
        assert second.backup_file.read_text() == "b"


class TestRestore:
    def test_restores_exact_bytes(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_bytes(b"original\n\xe2\x9c\x93")
        backup = store.capture(target)
        target.write_text("mutated")

        store.restore(backup)

        assert target.read_bytes() == b"original\n\xe2\x9c\x93"

    def test_restore_deletes_created_file(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "new.js"
        backup = store.capture(target)
        target.write_text("created by fix")

        store.restore(backup)

        assert not target.exists()

    def test_restore_from_disk_when_content_not_in_memory(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("original")
        backup = replace(store.capture(target), captured_content=None)
        target.write_text("mutated")

        store.restore(backup)

        assert target.read_text() == "original"

    def test_missing_backup_file_raises(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("original")
        backup = replace(store.capture(target), captured_content=None)
        backup.backup_file.unlink()
        target.write_text("mutated")

        with pytest.raises(RollbackFailure) as exc_info:
            store.restore(backup)

        assert backup.backup_id in str(exc_info.value)
        assert target.read_text() == "mutated"

    def test_restore_marks_rolled_back(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("x")
        backup = store.capture(target)
        store.restore(backup)

        assert store.list_backups() == []
        assert store.list_backups(include_rolled_back=True)[0].rolled_back is True


class TestListAndCleanup:
    def test_list_newest_first(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("1")
        first = store.capture(target)
        target.write_text("2")
        second = store.capture(target)

        ids = [b.backup_id for b in store.list_backups()]
        assert ids.index(second.backup_id) <= ids.index(first.backup_id)
        assert set(ids) == {first.backup_id, second.backup_id}

    def test_cleanup_removes_old_entries(self, store: BackupStore, tmp_path: Path):
        target = tmp_path / "app.js"
        target.write_text("old")
        old = store.capture(target)

        manifest_file = store.backup_dir / "manifest.json"
        manifest = json.loads(manifest_file.read_text())
        manifest[0]["captured_at"] = (utcnow() - timedelta(hours=48)).isoformat()
        manifest_file.write_text(json.dumps(manifest))

        target.write_text("fresh")
        fresh = store.capture(target)

        evicted = store.cleanup(timedelta(hours=24))

        assert [b.backup_id for b in evicted] == [old.backup_id]
        assert not old.backup_file.exists()
        assert fresh.backup_file.exists()
        assert [b.backup_id for b in store.list_backups()] == [fresh.backup_id]

    def test_cleanup_on_empty_store(self, store: BackupStore):
        assert store.cleanup() == []
