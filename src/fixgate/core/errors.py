"""Error taxonomy shared by the sandbox, mutation, validation and apply layers.

Every error names the phase it happened in and, where one is involved, the
target file, so an operator can tell what broke without re-running anything.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class FixGateError(Exception):
    """Base class for all fixgate errors."""

    default_phase = "fixgate"

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        target_file: Path | str | None = None,
    ) -> None:
        self.phase = phase or self.default_phase
        self.target_file = str(target_file) if target_file is not None else None
        self.reason = message
        super().__init__(self._format())

    def _format(self) -> str:
        location = f" ({self.target_file})" if self.target_file else ""
        return f"[{self.phase}]{location} {self.reason}"


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------


class SandboxCreationError(FixGateError):
    """The isolated copy of the project could not be created."""

    default_phase = "sandbox"


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


class MutationError(FixGateError):
    default_phase = "mutation"


class UnsupportedFixKindError(MutationError):
    """The fix names a kind the mutator does not know how to apply."""


class MutationIOError(MutationError):
    """Reading or writing the target file failed."""


class InvalidFixError(MutationError):
    """The fix is well-typed but cannot be applied (bad pattern, bad path...)."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class StageInternalError(FixGateError):
    """A stage's own tooling crashed.

    Never propagated out of the pipeline: it is logged and turned into a
    failing stage result.
    """

    default_phase = "stage"


class ValidationRunError(FixGateError):
    """Anything that escaped a whole validation run.

    Distinct from "the run completed and the fix failed its checks", which is
    reported through the score instead.
    """

    default_phase = "validation"


# ---------------------------------------------------------------------------
# Apply / rollback
# ---------------------------------------------------------------------------


class BackupError(FixGateError):
    """The pre-mutation snapshot could not be taken; nothing was mutated."""

    default_phase = "backing-up"


class FixApplicationError(FixGateError):
    """Applying a fix to the production tree failed.

    ``rollback`` holds the outcome of the automatic rollback (``None`` when
    auto-rollback is disabled). If the rollback itself failed a
    :class:`RollbackFailure` is raised instead of this error.
    """

    default_phase = "apply"

    def __init__(self, message: str, *, rollback: Any = None, **kwargs: Any) -> None:
        self.rollback = rollback
        super().__init__(message, **kwargs)


class RollbackFailure(FixGateError):
    """Restoring a backup failed; the tree may be in an inconsistent state."""

    default_phase = "rolling-back"
