"""Validation pipeline: sandbox, mutate, run the five stages, score.

Usage::

    validator = FixValidator(project_path=Path("/my/project"))
    report = validator.validate_fix_sync(fix, error, context)
    print(report.score, report.recommendation.action)

Stages run one after another inside a run; independent runs may execute
concurrently (each owns its sandbox, server and browser). A stage that raises
or exceeds ``validation.stage_timeout`` becomes a failing result and never
stops the stages after it. Only run-level problems (the sandbox cannot be
created, the fix cannot be written into it) escape, as
:class:`ValidationRunError`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import replace
from pathlib import Path

from fixgate.core.config import FixGateConfig, load_config
from fixgate.core.errors import (
    FixGateError,
    MutationError,
    SandboxCreationError,
    StageInternalError,
    ValidationRunError,
)
from fixgate.core.models import (
    ApplicationContext,
    ErrorReport,
    Fix,
    StageName,
    StageResult,
    ValidationReport,
)
from fixgate.fix.mutator import FixMutator
from fixgate.sandbox.manager import SandboxHandle, SandboxManager
from fixgate.validation import scoring
from fixgate.validation.browser import BrowserLauncher, PlaywrightLauncher
from fixgate.validation.regression import CommandRegressionSuite, RegressionSuite
from fixgate.validation.stages import ALL_STAGES
from fixgate.validation.stages.base import StageContext, ValidationStage

logger = logging.getLogger(__name__)


class FixValidator:
    """Runs proposed fixes through the validation stages in isolated sandboxes."""

    def __init__(
        self,
        project_path: Path | None = None,
        config: FixGateConfig | None = None,
        *,
        launcher: BrowserLauncher | None = None,
        regression_suite: RegressionSuite | None = None,
        stages: list[type[ValidationStage]] | None = None,
        sandbox_manager: SandboxManager | None = None,
        mutator: FixMutator | None = None,
    ) -> None:
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.launcher = launcher or PlaywrightLauncher(
            browser=self.config.validation.browser,
            headless=self.config.validation.headless,
        )
        self.regression_suite = regression_suite or CommandRegressionSuite(
            self.config.regression.commands,
            timeout=self.config.regression.timeout,
        )
        self._stage_classes = stages or list(ALL_STAGES)
        self.sandbox_manager = sandbox_manager or SandboxManager(self.project_path, self.config)
        self.mutator = mutator or FixMutator()
        # Directories inside the project that belong to fixgate, not to the code under test.
        self._skip_paths = (
            self.sandbox_manager.sandbox_root,
            self.config.apply.resolve_backup_dir(self.project_path),
        )

        self._history: list[ValidationReport] = []
        self._history_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def validate_fix(
        self,
        fix: Fix,
        error: ErrorReport,
        context: ApplicationContext,
    ) -> ValidationReport:
        """Validate one fix end to end and return its frozen report."""
        handle = await self._create_sandbox(context)
        try:
            try:
                await asyncio.to_thread(self.mutator.apply, fix, handle.path, context)
            except MutationError as exc:
                raise ValidationRunError(
                    f"Could not apply fix in sandbox {handle.id}: {exc.reason}",
                    phase="mutation",
                    target_file=context.target_file,
                ) from exc

            ctx = StageContext(
                sandbox=handle.sandbox,
                project_path=self.project_path,
                fix=fix,
                error=error,
                context=context,
                config=self.config,
                launcher=self.launcher,
                regression_suite=self.regression_suite,
                skip_paths=self._skip_paths,
            )

            stages: dict[StageName, StageResult] = {}
            for stage_cls in self._stage_classes:
                stage = stage_cls()
                stages[stage.name] = await self._run_stage(stage, ctx)

            score = scoring.compute_score(stages)
            recommendation = scoring.recommend(score)
            report = ValidationReport(
                sandbox_id=handle.id,
                fix=fix,
                error=error,
                context=context,
                stages=stages,
                score=score,
                recommendation=recommendation,
                summary=scoring.summarize(stages, score, recommendation),
            )
        except (ValidationRunError, asyncio.CancelledError):
            raise
        except Exception as exc:
            reason = exc.reason if isinstance(exc, FixGateError) else f"{type(exc).__name__}: {exc}"
            raise ValidationRunError(reason, target_file=context.target_file) from exc
        finally:
            await asyncio.to_thread(handle.cleanup)

        with self._history_lock:
            self._history.append(report)
        logger.info(
            "Validated fix for %s in %s: score %d, %s",
            context.target_file,
            handle.id,
            report.score,
            report.recommendation.action.value,
        )
        return report

    def validate_fix_sync(
        self,
        fix: Fix,
        error: ErrorReport,
        context: ApplicationContext,
    ) -> ValidationReport:
        """Blocking wrapper around :meth:`validate_fix` for callers without a loop."""
        return asyncio.run(self.validate_fix(fix, error, context))

    @property
    def history(self) -> list[ValidationReport]:
        with self._history_lock:
            return list(self._history)

    def get_history(self) -> dict:
        """Totals across all runs plus the ten most recent reports."""
        reports = self.history
        passed = sum(1 for r in reports if r.passed)
        average = sum(r.score for r in reports) / len(reports) if reports else 0.0
        return {
            "total": len(reports),
            "passed": passed,
            "failed": len(reports) - passed,
            "average_score": round(average, 1),
            "recent": reports[-10:],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create_sandbox(self, context: ApplicationContext) -> SandboxHandle:
        task = asyncio.ensure_future(asyncio.to_thread(self.sandbox_manager.create))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The copy keeps going in its thread; wait for it so it can be removed.
            try:
                handle = await task
            except SandboxCreationError:
                raise asyncio.CancelledError() from None
            await asyncio.to_thread(handle.cleanup)
            raise
        except SandboxCreationError as exc:
            raise ValidationRunError(
                f"Could not create sandbox: {exc.reason}",
                phase="sandbox",
                target_file=context.target_file,
            ) from exc

    async def _run_stage(self, stage: ValidationStage, ctx: StageContext) -> StageResult:
        timeout = ctx.config.validation.stage_timeout
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(stage.run(ctx), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            logger.warning("Stage %s timed out after %ss in %s", stage.name.value, timeout, ctx.sandbox.id)
            result = stage.failure({"error": f"Timed out after {timeout}s", "timeout": True})
        except Exception as exc:
            internal = StageInternalError(
                f"{type(exc).__name__}: {exc}",
                phase=stage.name.value,
                target_file=ctx.context.target_file,
            )
            logger.warning("%s", internal, exc_info=exc)
            result = stage.failure(
                {
                    "error": internal.reason,
                    "internal_error": True,
                    "timeout": "Timeout" in type(exc).__name__,
                }
            )
        result = replace(result, duration_ms=(time.perf_counter() - start) * 1000)
        logger.info(
            "Stage %s %s in %s (%.0f ms)",
            stage.name.value,
            "passed" if result.passed else "failed",
            ctx.sandbox.id,
            result.duration_ms,
        )
        return result
