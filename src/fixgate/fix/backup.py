"""Backup store: pre-mutation snapshots of single files.

Backups live in a configurable directory (``.fixgate/backups`` by default)
as timestamp-prefixed copies, indexed by ``manifest.json`` so they outlive
the process that took them::

    .fixgate/backups/
        manifest.json
        1718000000123-app.js
        1718000000456-app.js

A target that does not exist yet is still "backed up": the manifest records
its absence, and restoring that backup deletes the file.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fixgate.core.errors import BackupError, RollbackFailure
from fixgate.core.models import Backup

logger = logging.getLogger(__name__)

_MANIFEST = "manifest.json"


class BackupStore:
    """Thread-safe snapshot/restore of files before they are mutated."""

    def __init__(self, backup_dir: Path) -> None:
        self.backup_dir = backup_dir
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def capture(self, target: Path) -> Backup:
        """Snapshot *target*, or record that it does not exist yet."""
        backup_id = uuid.uuid4().hex[:12]

        if not target.exists():
            backup = Backup(
                backup_id=backup_id,
                original_file=target,
                backup_file=None,
                existed_before=False,
            )
            self._record(backup)
            logger.debug("Recorded absence of %s (backup %s)", target, backup_id)
            return backup

        try:
            content = target.read_bytes()
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            backup_file = self._unique_backup_path(target)
            backup_file.write_bytes(content)
        except OSError as exc:
            raise BackupError(f"Failed to create backup: {exc}", target_file=target) from exc

        backup = Backup(
            backup_id=backup_id,
            original_file=target,
            backup_file=backup_file,
            existed_before=True,
            captured_content=content,
        )
        self._record(backup)
        logger.info("Backed up %s to %s", target, backup_file)
        return backup

    def restore(self, backup: Backup) -> None:
        """Put the file back exactly as captured. Raises RollbackFailure."""
        target = backup.original_file

        if not backup.existed_before:
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                raise RollbackFailure(
                    f"Failed to delete file created by fix (backup {backup.backup_id}): {exc}",
                    target_file=target,
                ) from exc
            self._mark_rolled_back(backup)
            logger.info("Rolled back %s (file removed)", target)
            return

        content = backup.captured_content
        if content is None:
            if backup.backup_file is None or not backup.backup_file.exists():
                raise RollbackFailure(
                    f"Backup file missing for backup {backup.backup_id}: {backup.backup_file}",
                    target_file=target,
                )
            try:
                content = backup.backup_file.read_bytes()
            except OSError as exc:
                raise RollbackFailure(
                    f"Cannot read backup file {backup.backup_file}: {exc}",
                    target_file=target,
                ) from exc

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise RollbackFailure(
                f"Failed to restore from backup {backup.backup_id}: {exc}",
                target_file=target,
            ) from exc
        self._mark_rolled_back(backup)
        logger.info("Rolled back %s from backup %s", target, backup.backup_id)

    def list_backups(self, include_rolled_back: bool = False) -> list[Backup]:
        """Return recorded backups, newest first."""
        with self._lock:
            entries = self._load_manifest()
        backups = [Backup.from_dict(e) for e in entries]
        if not include_rolled_back:
            backups = [b for b in backups if not b.rolled_back]
        backups.sort(key=lambda b: b.captured_at, reverse=True)
        return backups

    def cleanup(self, older_than: timedelta = timedelta(hours=24)) -> list[Backup]:
        """Delete backups captured more than *older_than* ago.

        Returns the evicted backups so callers holding references can drop them.
        """
        cutoff = datetime.now(timezone.utc) - older_than
        evicted: list[Backup] = []

        with self._lock:
            kept = []
            for entry in self._load_manifest():
                backup = Backup.from_dict(entry)
                if backup.captured_at >= cutoff:
                    kept.append(entry)
                    continue
                if backup.backup_file is not None:
                    try:
                        backup.backup_file.unlink(missing_ok=True)
                    except OSError as exc:
                        logger.warning("Could not delete old backup %s: %s", backup.backup_file, exc)
                        kept.append(entry)
                        continue
                evicted.append(backup)
                logger.info("Cleaned up old backup %s", backup.backup_file or backup.backup_id)
            self._save_manifest(kept)

        return evicted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _unique_backup_path(self, target: Path) -> Path:
        stamp = int(time.time() * 1000)
        candidate = self.backup_dir / f"{stamp}-{target.name}"
        counter = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{stamp}-{counter}-{target.name}"
            counter += 1
        return candidate

    def _record(self, backup: Backup) -> None:
        try:
            with self._lock:
                manifest = self._load_manifest()
                manifest.append(backup.to_dict())
                self._save_manifest(manifest)
        except OSError as exc:
            raise BackupError(
                f"Failed to update backup manifest: {exc}", target_file=backup.original_file
            ) from exc

    def _mark_rolled_back(self, backup: Backup) -> None:
        try:
            with self._lock:
                manifest = self._load_manifest()
                for entry in manifest:
                    if entry["backup_id"] == backup.backup_id:
                        entry.update(replace(backup, rolled_back=True).to_dict())
                self._save_manifest(manifest)
        except OSError as exc:
            # The file itself was restored; only the index is stale.
            logger.warning("Could not update backup manifest after rollback: %s", exc)

    def _load_manifest(self) -> list[dict]:
        manifest_file = self.backup_dir / _MANIFEST
        if not manifest_file.exists():
            return []
        try:
            return json.loads(manifest_file.read_text())
        except json.JSONDecodeError:
            logger.warning("Backup manifest %s is corrupt; starting a new one", manifest_file)
            return []

    def _save_manifest(self, manifest: list[dict]) -> None:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        manifest_file = self.backup_dir / _MANIFEST
        tmp = manifest_file.with_suffix(".tmp")
        tmp.write_text(json.dumps(manifest, indent=2))
        tmp.replace(manifest_file)
