"""Shared fakes for validation tests: an in-memory browser page and launcher."""

from __future__ import annotations

import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from fixgate.core.config import FixGateConfig
from fixgate.core.models import ApplicationContext, ErrorReport, Fix, FixKind, Sandbox
from fixgate.validation.browser import BrowserLauncher, BrowserPage
from fixgate.validation.regression import ScriptedRegressionSuite
from fixgate.validation.stages.base import StageContext


class FakePage(BrowserPage):
    """Scripted page: selectors map to visibility/enabled state, evaluate returns canned values.

    An ``evaluations`` value may be a callable taking the page, for answers that
    change after a reload.
    """

    def __init__(
        self,
        *,
        title: str = "Cultivation Game",
        visible: set[str] | None = None,
        enabled: set[str] | None = None,
        evaluations: dict[str, Any] | None = None,
        console_during_wait: list[str] | None = None,
        page_errors: list[str] | None = None,
        goto_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self._title = title
        self.visible = visible if visible is not None else {".game-container, #game-container, main, .app"}
        self.enabled = enabled or set()
        self.evaluations = evaluations or {}
        self.console_during_wait = console_during_wait or []
        self.initial_page_errors = page_errors or []
        self.goto_error = goto_error
        self.visited: list[str] = []
        self.clicked: list[str] = []
        self.waited: list[int] = []
        self.reloads = 0

    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append(url)
        self.page_errors.extend(self.initial_page_errors)

    async def reload(self, timeout_ms: int) -> None:
        self.reloads += 1

    async def title(self) -> str:
        return self._title

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        for needle, value in self.evaluations.items():
            if needle in expression:
                return value(self) if callable(value) else value
        return True

    async def click(self, selector: str, timeout_ms: int) -> None:
        self.clicked.append(selector)

    async def is_visible(self, selector: str) -> bool:
        return selector in self.visible

    async def is_enabled(self, selector: str, timeout_ms: int) -> bool:
        return selector in self.enabled

    async def wait(self, ms: int) -> None:
        self.waited.append(ms)
        self.console_errors.extend(self.console_during_wait)
        self.console_during_wait = []


class FakeLauncher(BrowserLauncher):
    def __init__(self, page_factory=FakePage) -> None:
        self.page_factory = page_factory
        self.pages: list[FakePage] = []
        self.open_sessions = 0

    @asynccontextmanager
    async def session(self):
        page = self.page_factory()
        self.pages.append(page)
        self.open_sessions += 1
        try:
            yield page
        finally:
            self.open_sessions -= 1


@pytest.fixture
def config() -> FixGateConfig:
    config = FixGateConfig()
    config.validation.settle_ms = 0
    config.validation.console_window_ms = 0
    config.performance.window_ms = 0
    return config


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "index.html").write_text("<html><head><title>Cultivation</title></head></html>\n")
    (root / "app.js").write_text("function start() {\n  return foo();\n}\n")
    return root


@pytest.fixture
def make_context(project: Path, tmp_path: Path, config: FixGateConfig):
    """Build a StageContext over a copy of ``project`` that a test may mutate."""

    def _make(
        *,
        launcher: BrowserLauncher | None = None,
        error: ErrorReport | None = None,
        suite=None,
        target: str = "app.js",
    ) -> StageContext:
        sandbox_root = tmp_path / "sandbox"
        if not sandbox_root.exists():
            shutil.copytree(project, sandbox_root)
        return StageContext(
            sandbox=Sandbox(id="sandbox_test", root_path=sandbox_root),
            project_path=project,
            fix=Fix(kind=FixKind.GENERIC, content=""),
            error=error or ErrorReport(kind="unknown"),
            context=ApplicationContext(target_file=Path(target)),
            config=config,
            launcher=launcher or FakeLauncher(),
            regression_suite=suite or ScriptedRegressionSuite([]),
        )

    return _make


@pytest.fixture
def launcher_with():
    """``launcher_with(**page_kwargs)`` gives a launcher whose pages are ``FakePage(**page_kwargs)``."""

    def _make(**page_kwargs) -> FakeLauncher:
        return FakeLauncher(lambda: FakePage(**page_kwargs))

    return _make
