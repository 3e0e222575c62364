"""Syntax stage: every source file in the sandbox must parse with balanced brackets."""

from __future__ import annotations

import asyncio

from fixgate.core.models import StageName, StageResult
from fixgate.sandbox.tree import iter_files
from fixgate.validation.parsing import SOURCE_SUFFIXES, check_file
from fixgate.validation.stages.base import StageContext, ValidationStage


class SyntaxStage(ValidationStage):
    name = StageName.SYNTAX
    description = "All source files parse and brackets balance"

    async def run(self, ctx: StageContext) -> StageResult:
        return await asyncio.to_thread(self._scan, ctx)

    def _scan(self, ctx: StageContext) -> StageResult:
        root = ctx.sandbox.root_path
        errors = []
        files_checked = 0

        for path in iter_files(root, ctx.config.exclude, SOURCE_SUFFIXES):
            files_checked += 1
            errors.extend(check_file(path, path.relative_to(root).as_posix()))

        return self._result(
            passed=not errors,
            details={
                "files_checked": files_checked,
                "files_with_errors": len({e.file for e in errors}),
                "errors": [e.to_dict() for e in errors],
            },
            error_count=len(errors),
        )
