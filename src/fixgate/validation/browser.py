"""Headless browser sessions used by the functional and performance stages.

Stages talk to :class:`BrowserPage`, never to Playwright directly, so tests
can drive them with an in-memory fake.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)


class BrowserPage(ABC):
    """The subset of page operations the validation stages rely on.

    ``console_errors`` and ``page_errors`` accumulate from the moment the page
    is created: console messages of type ``error`` and uncaught exceptions,
    respectively.
    """

    def __init__(self) -> None:
        self.console_errors: list[str] = []
        self.page_errors: list[str] = []

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        """Navigate and wait for the given load state, or raise on timeout."""

    @abstractmethod
    async def reload(self, timeout_ms: int) -> None:
        """Reload the current page and wait for its load event."""

    @abstractmethod
    async def title(self) -> str: ...

    @abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...

    @abstractmethod
    async def click(self, selector: str, timeout_ms: int) -> None: ...

    @abstractmethod
    async def is_visible(self, selector: str) -> bool: ...

    @abstractmethod
    async def is_enabled(self, selector: str, timeout_ms: int) -> bool: ...

    @abstractmethod
    async def wait(self, ms: int) -> None: ...


class BrowserLauncher(ABC):
    """Opens one isolated browser page per validation stage."""

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager[BrowserPage]:
        """Async context manager yielding a fresh page; closes the browser on exit."""


# ---------------------------------------------------------------------------
# Playwright
# ---------------------------------------------------------------------------


class PlaywrightPage(BrowserPage):
    def __init__(self, page) -> None:
        super().__init__()
        self._page = page
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)

    def _on_console(self, message) -> None:
        if message.type == "error":
            self.console_errors.append(message.text)

    def _on_page_error(self, error) -> None:
        self.page_errors.append(str(error))

    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    async def reload(self, timeout_ms: int) -> None:
        await self._page.reload(wait_until="load", timeout=timeout_ms)

    async def title(self) -> str:
        return await self._page.title()

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self._page.evaluate(expression, arg)

    async def click(self, selector: str, timeout_ms: int) -> None:
        await self._page.locator(selector).first.click(timeout=timeout_ms)

    async def is_visible(self, selector: str) -> bool:
        return await self._page.locator(selector).first.is_visible()

    async def is_enabled(self, selector: str, timeout_ms: int) -> bool:
        return await self._page.locator(selector).first.is_enabled(timeout=timeout_ms)

    async def wait(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)


class PlaywrightLauncher(BrowserLauncher):
    """Launches a headless Playwright browser (chromium by default)."""

    def __init__(self, browser: str = "chromium", headless: bool = True) -> None:
        self.browser = browser
        self.headless = headless

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserPage]:
        async with async_playwright() as p:
            browser_type = getattr(p, self.browser)
            browser = await browser_type.launch(headless=self.headless)
            logger.debug("Launched %s (headless=%s)", self.browser, self.headless)
            try:
                page = await browser.new_page()
                yield PlaywrightPage(page)
            finally:
                await browser.close()
