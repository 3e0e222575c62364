"""Regression suites run against a mutated sandbox.

A suite is anything that can be pointed at a directory and report pass/fail
counts. Two are provided: shell commands from ``fixgate.toml`` (``npm test``,
``pytest -q``...) and in-process Python callables.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from fixgate.core.models import RegressionFailure, RegressionResults

logger = logging.getLogger(__name__)


class RegressionSuite(ABC):
    """Runs a fixed set of regression tests against a project root."""

    @abstractmethod
    def run(self, root: Path) -> RegressionResults: ...

    async def run_async(self, root: Path) -> RegressionResults:
        """Run from a coroutine. In-process suites run on a worker thread."""
        return await asyncio.to_thread(self.run, root)


@dataclass
class RegressionTest:
    """One in-process test. ``check`` raises (usually AssertionError) to fail."""

    name: str
    check: Callable[[Path], None]
    critical: bool = False


class ScriptedRegressionSuite(RegressionSuite):
    """Runs Python callables in order; a critical failure stops the suite."""

    def __init__(self, tests: Iterable[RegressionTest]) -> None:
        self.tests = list(tests)

    def run(self, root: Path) -> RegressionResults:
        start = time.perf_counter()
        passed = 0
        failures: list[RegressionFailure] = []

        for index, test in enumerate(self.tests):
            try:
                test.check(root)
            except Exception as exc:
                failures.append(
                    RegressionFailure(
                        test=test.name,
                        error=f"{type(exc).__name__}: {exc}",
                        critical=test.critical,
                    )
                )
                if test.critical:
                    logger.warning("Critical regression test %s failed; stopping suite", test.name)
                    return RegressionResults(
                        total=len(self.tests),
                        passed=passed,
                        failed=len(failures),
                        failures=failures,
                        skipped=len(self.tests) - index - 1,
                        duration_ms=(time.perf_counter() - start) * 1000,
                    )
                continue
            passed += 1

        return RegressionResults(
            total=len(self.tests),
            passed=passed,
            failed=len(failures),
            failures=failures,
            duration_ms=(time.perf_counter() - start) * 1000,
        )


class CommandRegressionSuite(RegressionSuite):
    """Runs shell commands with the sandbox as working directory.

    Each command is one test; a non-zero exit status or a timeout fails it.
    Commands are treated as critical so a broken build does not waste time on
    the rest of the list. Each command gets its own process group, which is
    killed on timeout or when the awaiting task is cancelled.
    """

    def __init__(self, commands: Iterable[str], timeout: float = 300.0) -> None:
        self.commands = list(commands)
        self.timeout = timeout

    def run(self, root: Path) -> RegressionResults:
        return asyncio.run(self.run_async(root))

    async def run_async(self, root: Path) -> RegressionResults:
        start = time.perf_counter()
        passed = 0
        failures: list[RegressionFailure] = []

        for index, command in enumerate(self.commands):
            error = await self._run_command(command, root)
            if error is None:
                passed += 1
                continue
            failures.append(RegressionFailure(test=command, error=error, critical=True))
            return RegressionResults(
                total=len(self.commands),
                passed=passed,
                failed=len(failures),
                failures=failures,
                skipped=len(self.commands) - index - 1,
                duration_ms=(time.perf_counter() - start) * 1000,
            )

        return RegressionResults(
            total=len(self.commands),
            passed=passed,
            failed=0,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    async def _run_command(self, command: str, root: Path) -> str | None:
        logger.info("Running regression command in %s: %s", root, command)
        try:
            proc = await asyncio.create_subprocess_exec(
                *shlex.split(command),
                cwd=str(root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            return f"Could not start command: {exc}"

        try:
            out_b, err_b = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            return f"Timed out after {self.timeout}s"
        finally:
            if proc.returncode is None:
                _kill(proc)
                await proc.wait()

        if proc.returncode == 0:
            return None
        output = (err_b or out_b or b"").decode("utf-8", "replace").strip().splitlines()
        tail = output[-1] if output else ""
        return f"Exit status {proc.returncode}" + (f": {tail}" if tail else "")


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the command and anything it spawned."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        return
    logger.warning("Killed regression command (pid %d)", proc.pid)
