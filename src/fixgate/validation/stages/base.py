"""Base class for all validation stages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fixgate.core.config import FixGateConfig
from fixgate.core.models import ApplicationContext, ErrorReport, Fix, Sandbox, StageName, StageResult
from fixgate.validation.browser import BrowserLauncher
from fixgate.validation.regression import RegressionSuite


@dataclass(frozen=True)
class StageContext:
    """Everything a stage may look at during one validation run.

    ``sandbox`` already contains the mutated file. ``project_path`` is the
    untouched production tree, used as the "before" picture by stages that
    compare. ``skip_paths`` are directories under the project owned by fixgate
    itself (sandbox root, backups) that comparisons must ignore.
    """

    sandbox: Sandbox
    project_path: Path
    fix: Fix
    error: ErrorReport
    context: ApplicationContext
    config: FixGateConfig
    launcher: BrowserLauncher
    regression_suite: RegressionSuite
    skip_paths: tuple[Path, ...] = ()

    @property
    def target_rel(self) -> Path:
        """The target file relative to the project root."""
        target = self.context.target_file
        if target.is_absolute():
            try:
                return target.resolve().relative_to(self.project_path)
            except ValueError:
                return Path(target.name)
        return target


class ValidationStage(ABC):
    """Abstract base class for the five validation stages.

    Each concrete stage must define:
      - name       : the :class:`StageName` it reports under
      - description: short human-readable description of what is checked

    ``run`` may raise; the pipeline turns any exception (or a timeout) into a
    failing :class:`StageResult` so one stage can never abort its siblings.
    """

    name: StageName
    description: str = ""

    @abstractmethod
    async def run(self, ctx: StageContext) -> StageResult:
        """Exercise the sandbox and return this stage's verdict."""
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _result(
        self,
        passed: bool,
        details: dict[str, Any] | None = None,
        error_count: int | None = None,
    ) -> StageResult:
        """Create a :class:`StageResult` stamped with this stage's name."""
        return StageResult(
            name=self.name,
            passed=passed,
            details=details or {},
            error_count=error_count,
        )

    def failure(self, details: dict[str, Any]) -> StageResult:
        return self._result(False, details)
