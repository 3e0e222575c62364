"""Regression stage: run the project's regression suite inside the sandbox."""

from __future__ import annotations

from fixgate.core.models import StageName, StageResult
from fixgate.validation.stages.base import StageContext, ValidationStage


class RegressionStage(ValidationStage):
    name = StageName.REGRESSION
    description = "Existing regression tests still pass"

    async def run(self, ctx: StageContext) -> StageResult:
        results = await ctx.regression_suite.run_async(ctx.sandbox.root_path)
        return self._result(
            passed=results.failed == 0,
            details={
                "total": results.total,
                "passed": results.passed,
                "failed": results.failed,
                "skipped": results.skipped,
                "empty_suite": results.total == 0,
                "failures": [f.to_dict() for f in results.failures],
            },
            error_count=results.failed,
        )
