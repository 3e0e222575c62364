"""Functional stage: load the mutated app in a headless browser and check the defect is gone."""

from __future__ import annotations

from fixgate.core.models import StageName, StageResult
from fixgate.validation.scripts import run_reproduction, run_smoke_checks
from fixgate.validation.server import SandboxServer
from fixgate.validation.stages.base import StageContext, ValidationStage


class FunctionalStage(ValidationStage):
    """Passes only if the reproduction script passes, the smoke checks hold,
    and no uncaught exception surfaced while the page was open.
    """

    name = StageName.FUNCTIONAL
    description = "Original error no longer reproduces and the app still boots"

    async def run(self, ctx: StageContext) -> StageResult:
        validation = ctx.config.validation

        with SandboxServer(ctx.sandbox.root_path) as server:
            async with ctx.launcher.session() as page:
                await page.goto(server.url, timeout_ms=validation.load_timeout_ms)
                await page.wait(validation.settle_ms)

                category, reproduction = await run_reproduction(page, ctx.error, ctx.config)
                smoke = await run_smoke_checks(page, ctx.config)
                uncaught = list(page.page_errors)

        passed = reproduction.passed and smoke.passed and not uncaught
        return self._result(
            passed=passed,
            details={
                "error_category": category.value,
                "original_error_fixed": reproduction.passed,
                "reproduction": reproduction.reason,
                **reproduction.observations,
                "smoke_checks_passed": smoke.passed,
                "smoke_checks": smoke.reason,
                "uncaught_errors": uncaught[:10],
            },
            error_count=len(uncaught),
        )
