"""Fix application to the production tree, with backup and rollback support.

Each apply walks a fixed sequence of phases::

    backing-up -> mutating -> re-validating -> recording

A failure in mutating or re-validating triggers an automatic rollback to the
backup taken in the first phase. Nothing is mutated before the backup exists.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

from fixgate.core.config import FixGateConfig, load_config
from fixgate.core.errors import FixApplicationError, FixGateError, RollbackFailure
from fixgate.core.models import (
    ApplicationContext,
    Backup,
    ErrorReport,
    Fix,
    FixApplicationRecord,
    RollbackResult,
    RollbackSummary,
)
from fixgate.fix.backup import BackupStore
from fixgate.fix.mutator import FixMutator, resolve_target
from fixgate.validation.parsing import check_file, is_source_file

logger = logging.getLogger(__name__)


class ApplyPhase(enum.Enum):
    BACKING_UP = "backing-up"
    MUTATING = "mutating"
    REVALIDATING = "re-validating"
    RECORDING = "recording"
    ROLLING_BACK = "rolling-back"


class FixApplier:
    """Applies validated fixes to the real project tree.

    Usage::

        applier = FixApplier(project_path=Path("/my/project"))
        record = applier.apply(fix, error, context)
        ...
        applier.rollback_last()

    Two applies to the same file are serialised; applies to different files
    run concurrently. History and the rollback stack are bounded (100 and 50
    entries by default) and evict oldest-first.
    """

    def __init__(
        self,
        project_path: Path | None = None,
        config: FixGateConfig | None = None,
        *,
        backup_store: BackupStore | None = None,
        mutator: FixMutator | None = None,
        dry_run: bool = False,
    ) -> None:
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.backup_store = backup_store or BackupStore(
            self.config.apply.resolve_backup_dir(self.project_path)
        )
        self.mutator = mutator or FixMutator()
        self.auto_rollback = self.config.apply.auto_rollback
        self.dry_run = dry_run

        self._history: deque[FixApplicationRecord] = deque(maxlen=self.config.apply.history_limit)
        self._rollback_stack: deque[Backup] = deque(maxlen=self.config.apply.rollback_limit)
        self._state_lock = threading.Lock()
        self._file_locks: dict[Path, threading.RLock] = {}
        self._file_locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(
        self,
        fix: Fix,
        error: ErrorReport,
        context: ApplicationContext,
    ) -> FixApplicationRecord:
        """Back up, mutate, re-validate and record one fix.

        Raises :class:`BackupError` if the snapshot fails (nothing was touched),
        :class:`FixApplicationError` if mutation or re-validation fails, and
        :class:`RollbackFailure` if the automatic rollback after such a failure
        could not restore the file.
        """
        target = resolve_target(self.project_path, context.target_file)

        if self.dry_run:
            logger.info("Dry run: would apply %s fix to %s", fix.kind.value, target)
            return FixApplicationRecord(
                fix_summary=fix.summary(),
                error_summary=error.summary(),
                result={"dry_run": True, "target_file": str(target)},
                backup=None,
                success=True,
                message=f"Dry run: {fix.kind.value} fix not applied to {target}",
            )

        with self._lock_for(target):
            backup = self.backup_store.capture(target)

            phase = ApplyPhase.MUTATING
            try:
                self.mutator.apply(fix, self.project_path, context)
                phase = ApplyPhase.REVALIDATING
                self._revalidate(fix, target)
            except Exception as exc:
                reason = exc.reason if isinstance(exc, FixGateError) else f"{type(exc).__name__}: {exc}"
                return self._handle_failure(fix, error, target, backup, phase, reason, exc)

            record = FixApplicationRecord(
                fix_summary=fix.summary(),
                error_summary=error.summary(),
                result={"target_file": str(target), "phase": ApplyPhase.RECORDING.value},
                backup=backup,
                success=True,
                message=f"Applied {fix.kind.value} fix to {target}",
            )
            with self._state_lock:
                self._history.append(record)
                self._rollback_stack.append(backup)

        logger.info("Fix applied to %s (backup %s)", target, backup.backup_id)
        return record

    def _handle_failure(
        self,
        fix: Fix,
        error: ErrorReport,
        target: Path,
        backup: Backup,
        phase: ApplyPhase,
        reason: str,
        exc: Exception,
    ) -> FixApplicationRecord:
        logger.error("Applying fix to %s failed while %s: %s", target, phase.value, reason)

        rollback = self.rollback(backup) if self.auto_rollback else None

        record = FixApplicationRecord(
            fix_summary=fix.summary(),
            error_summary=error.summary(),
            result={
                "target_file": str(target),
                "phase": phase.value,
                "error": reason,
                "rolled_back": bool(rollback and rollback.success),
            },
            backup=backup,
            success=False,
            message=f"{phase.value} failed: {reason}",
        )
        with self._state_lock:
            self._history.append(record)
            if rollback is None:
                # Left in place for a manual rollback.
                self._rollback_stack.append(backup)

        if rollback is not None and not rollback.success:
            raise RollbackFailure(
                f"{phase.value} failed ({reason}) and the automatic rollback did not "
                f"complete: {rollback.message}. The file may be in an inconsistent state.",
                target_file=target,
            ) from exc

        raise FixApplicationError(
            reason,
            phase=phase.value,
            target_file=target,
            rollback=rollback,
        ) from exc

    def _revalidate(self, fix: Fix, target: Path) -> None:
        if not target.exists():
            raise FixApplicationError(
                "Target file missing after mutation",
                phase=ApplyPhase.REVALIDATING.value,
                target_file=target,
            )

        if is_source_file(target):
            issues = check_file(target)
            if issues:
                first = issues[0]
                where = f" on line {first.line}" if first.line else ""
                raise FixApplicationError(
                    f"Syntax check failed{where}: {first.message}",
                    phase=ApplyPhase.REVALIDATING.value,
                    target_file=target,
                )

        if fix.expected_fragment:
            content = target.read_text(encoding="utf-8", errors="replace")
            if fix.expected_fragment not in content:
                raise FixApplicationError(
                    "Fix content not found in target file after mutation",
                    phase=ApplyPhase.REVALIDATING.value,
                    target_file=target,
                )

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, backup: Backup | None = None) -> RollbackResult:
        """Restore one backup. Never raises; failures come back in the result."""
        if backup is None:
            failure = RollbackFailure("No backup available for rollback")
            logger.warning("%s", failure)
            return RollbackResult(success=False, message=failure.reason, failure=failure)

        with self._lock_for(backup.original_file):
            try:
                self.backup_store.restore(backup)
            except RollbackFailure as failure:
                logger.error("Rollback of %s failed: %s", backup.original_file, failure.reason)
                return RollbackResult(
                    success=False, message=failure.reason, backup=backup, failure=failure
                )

        action = "removed" if not backup.existed_before else "restored"
        return RollbackResult(
            success=True,
            message=f"Rollback successful: {backup.original_file} {action}",
            backup=backup,
        )

    def rollback_last(self) -> RollbackResult:
        """Roll back the most recent successful apply."""
        with self._state_lock:
            backup = self._rollback_stack.pop() if self._rollback_stack else None

        result = self.rollback(backup)
        if backup is not None and not result.success:
            with self._state_lock:
                self._rollback_stack.append(backup)
        return result

    def rollback_multiple(self, count: int) -> RollbackSummary:
        """Roll back up to *count* applies, newest first, stopping at the first failure."""
        successful = 0
        failure = None

        for _ in range(count):
            with self._state_lock:
                if not self._rollback_stack:
                    break
                backup = self._rollback_stack[-1]

            result = self.rollback(backup)
            if not result.success:
                failure = result.failure
                break

            with self._state_lock:
                if self._rollback_stack and self._rollback_stack[-1] is backup:
                    self._rollback_stack.pop()
            successful += 1

        with self._state_lock:
            remaining = len(self._rollback_stack)
        return RollbackSummary(
            requested=count, successful=successful, remaining=remaining, failure=failure
        )

    # ------------------------------------------------------------------
    # History and housekeeping
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[FixApplicationRecord]:
        with self._state_lock:
            return list(self._history)

    @property
    def rollback_depth(self) -> int:
        with self._state_lock:
            return len(self._rollback_stack)

    def get_history(self) -> dict:
        """Summary of past applies plus the ten most recent records."""
        with self._state_lock:
            records = list(self._history)
            depth = len(self._rollback_stack)
        successful = sum(1 for r in records if r.success)
        return {
            "total": len(records),
            "successful": successful,
            "failed": len(records) - successful,
            "rollback_available": depth,
            "recent": records[-10:],
        }

    def resume(self) -> int:
        """Reload unrolled backups from the store onto the rollback stack.

        Used by a fresh process (the CLI) to roll back applies made by an
        earlier one. Returns the number of backups loaded.
        """
        backups = self.backup_store.list_backups()[: self.config.apply.rollback_limit]
        with self._state_lock:
            known = {b.backup_id for b in self._rollback_stack}
            loaded = [b for b in reversed(backups) if b.backup_id not in known]
            self._rollback_stack.extend(loaded)
        logger.debug("Resumed %d backup(s) from %s", len(loaded), self.backup_store.backup_dir)
        return len(loaded)

    def cleanup_backups(self, older_than: timedelta | None = None) -> list[Backup]:
        """Evict old backups and drop every reference to them."""
        if older_than is None:
            older_than = timedelta(hours=self.config.apply.backup_max_age_hours)

        evicted = self.backup_store.cleanup(older_than)
        if not evicted:
            return evicted

        ids = {b.backup_id for b in evicted}
        with self._state_lock:
            kept = [b for b in self._rollback_stack if b.backup_id not in ids]
            self._rollback_stack.clear()
            self._rollback_stack.extend(kept)

            records = [
                replace(r, backup=None) if r.backup and r.backup.backup_id in ids else r
                for r in self._history
            ]
            self._history.clear()
            self._history.extend(records)

        logger.info("Evicted %d backup(s) older than %s", len(evicted), older_than)
        return evicted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, target: Path) -> threading.RLock:
        with self._file_locks_guard:
            lock = self._file_locks.get(target)
            if lock is None:
                lock = self._file_locks[target] = threading.RLock()
            return lock
