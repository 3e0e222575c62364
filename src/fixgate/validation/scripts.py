"""Reproduction scripts chosen from an error report's component and kind.

Four families exist:

* **UI** errors have a configured :class:`InteractionScript`, keyed by
  component or kind: click through a sequence of controls, assert the
  end-state of a target control, optionally confirm and check the screen
  transition that follows.
* **State** errors on the ``save-system`` or ``game-state`` components inspect
  the app's state object directly: a save/reload round trip, or the presence
  of its ``get``/``set`` accessors.
* **Console** errors are watched for over a fixed window; the fix passes if the
  original message no longer recurs.
* Anything else only gets the baseline smoke checks, which every functional
  run performs anyway.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fixgate.core.config import FixGateConfig, InteractionScript
from fixgate.core.models import ErrorReport
from fixgate.validation.browser import BrowserPage

logger = logging.getLogger(__name__)

# How long a selector lookup may block before it counts as "not there".
_SELECTOR_TIMEOUT_MS = 2000

_STATE_OBJECT_PRESENT = (
    "name => typeof window[name] !== 'undefined' && window[name] !== null"
)
_READ_PLAYER = (
    "name => { const s = window[name];"
    " return s && typeof s.get === 'function' ? (s.get('player') ?? null) : null; }"
)
_SAVE_STATE = (
    "name => { try { window[name].save(); return {success: true}; }"
    " catch (e) { return {success: false, error: String((e && e.message) || e)}; } }"
)
_HAS_ACCESSORS = (
    "name => { const s = window[name];"
    " return !!s && typeof s.get === 'function' && typeof s.set === 'function'; }"
)


class ErrorCategory(enum.Enum):
    UI = "ui"
    STATE = "state"
    CONSOLE = "console"
    UNKNOWN = "unknown"


@dataclass
class ScriptOutcome:
    passed: bool
    reason: str = ""
    observations: dict[str, Any] = field(default_factory=dict)


def _interaction_for(error: ErrorReport, config: FixGateConfig) -> InteractionScript | None:
    scripts = config.functional.scripts
    if error.component and error.component in scripts:
        return scripts[error.component]
    return scripts.get(error.kind)


def categorize(error: ErrorReport, config: FixGateConfig) -> ErrorCategory:
    if error.component in STATE_CHECKS:
        return ErrorCategory.STATE
    if _interaction_for(error, config) is not None:
        return ErrorCategory.UI
    if error.kind in config.functional.console_kinds:
        return ErrorCategory.CONSOLE
    return ErrorCategory.UNKNOWN


async def run_reproduction(
    page: BrowserPage,
    error: ErrorReport,
    config: FixGateConfig,
) -> tuple[ErrorCategory, ScriptOutcome]:
    """Run whichever reproduction script matches *error*."""
    category = categorize(error, config)
    if category is ErrorCategory.STATE:
        outcome = await STATE_CHECKS[error.component](page, config)
    elif category is ErrorCategory.UI:
        outcome = await run_interaction(page, _interaction_for(error, config), config)
    elif category is ErrorCategory.CONSOLE:
        outcome = await watch_console(page, error, config)
    else:
        outcome = ScriptOutcome(passed=True, reason="No reproduction script; smoke checks only")
    logger.debug("Reproduction for %s (%s): %s", error.kind, category.value, outcome.reason)
    return category, outcome


async def run_interaction(
    page: BrowserPage,
    script: InteractionScript,
    config: FixGateConfig,
) -> ScriptOutcome:
    clicked: list[str] = []
    for selector in script.clicks:
        if await page.is_visible(selector):
            await page.click(selector, timeout_ms=_SELECTOR_TIMEOUT_MS)
            clicked.append(selector)

    await page.wait(config.validation.settle_ms)

    if script.expect in ("enabled", "disabled"):
        enabled = await page.is_enabled(script.target, timeout_ms=_SELECTOR_TIMEOUT_MS)
        passed = enabled if script.expect == "enabled" else not enabled
        state = "enabled" if enabled else "disabled"
    else:
        visible = await page.is_visible(script.target)
        passed = visible if script.expect == "visible" else not visible
        state = "visible" if visible else "hidden"

    observations: dict[str, Any] = {"clicked": clicked, "target_state": state}
    reason = f"{script.target} is {state}" + ("" if passed else f", expected {script.expect}")
    if not passed or not script.confirm:
        return ScriptOutcome(passed=passed, reason=reason, observations=observations)

    await page.click(script.confirm, timeout_ms=_SELECTOR_TIMEOUT_MS)
    clicked.append(script.confirm)
    await page.wait(config.validation.settle_ms)

    problems: list[str] = []
    if script.hidden_after and await page.is_visible(script.hidden_after):
        problems.append(f"{script.hidden_after} still visible")
    if script.shown_after and not await page.is_visible(script.shown_after):
        problems.append(f"{script.shown_after} not shown")
    observations["transitioned"] = not problems
    if problems:
        return ScriptOutcome(
            passed=False,
            reason=f"Failed to transition after {script.confirm}: {'; '.join(problems)}",
            observations=observations,
        )
    return ScriptOutcome(
        passed=True,
        reason=f"{reason}; transition after {script.confirm} succeeded",
        observations=observations,
    )


async def check_save_system(page: BrowserPage, config: FixGateConfig) -> ScriptOutcome:
    """Save, reload, and require the player record to survive unchanged."""
    name = config.functional.state_object
    before = await page.evaluate(_READ_PLAYER, name)

    saved = await page.evaluate(_SAVE_STATE, name)
    if not isinstance(saved, dict) or not saved.get("success"):
        error = saved.get("error", "unknown error") if isinstance(saved, dict) else saved
        return ScriptOutcome(
            passed=False,
            reason=f"Save failed: {error}",
            observations={"state_check": "save-system"},
        )

    await page.reload(timeout_ms=config.validation.load_timeout_ms)
    await page.wait(config.validation.settle_ms)
    after = await page.evaluate(_READ_PLAYER, name)

    passed = before == after
    return ScriptOutcome(
        passed=passed,
        reason="Save/load cycle preserved player state" if passed else "Player state changed after reload",
        observations={"state_check": "save-system", "reloaded": True},
    )


async def check_game_state(page: BrowserPage, config: FixGateConfig) -> ScriptOutcome:
    """The state object exists and exposes ``get`` and ``set``."""
    name = config.functional.state_object
    valid = bool(await page.evaluate(_HAS_ACCESSORS, name))
    return ScriptOutcome(
        passed=valid,
        reason=f"window.{name} is valid" if valid else f"window.{name} lacks get/set accessors",
        observations={"state_check": "game-state"},
    )


STATE_CHECKS: dict[str, Callable[[BrowserPage, FixGateConfig], Awaitable[ScriptOutcome]]] = {
    "save-system": check_save_system,
    "game-state": check_game_state,
}


async def watch_console(
    page: BrowserPage,
    error: ErrorReport,
    config: FixGateConfig,
) -> ScriptOutcome:
    start = len(page.console_errors) + len(page.page_errors)
    seen_before = _matches(page.console_errors + page.page_errors, error.message)

    await page.wait(config.validation.console_window_ms)

    observed = (page.console_errors + page.page_errors)[start:]
    recurrences = _matches(observed, error.message)
    total = len(seen_before) + len(recurrences)
    if total:
        return ScriptOutcome(
            passed=False,
            reason=f"Original error recurred {total} time(s)",
            observations={"recurrences": (seen_before + recurrences)[:5]},
        )
    return ScriptOutcome(
        passed=True,
        reason="Original error did not recur",
        observations={"window_ms": config.validation.console_window_ms},
    )


def _matches(messages: list[str], needle: str) -> list[str]:
    if not needle:
        return []
    return [m for m in messages if needle in m]


async def run_smoke_checks(page: BrowserPage, config: FixGateConfig) -> ScriptOutcome:
    """Title, game-state object, and main container checks."""
    fn = config.functional
    failed: list[str] = []

    title = await page.title()
    if fn.expected_title:
        if fn.expected_title not in title:
            failed.append(f"title {title!r} does not contain {fn.expected_title!r}")
    elif not title:
        failed.append("page has no title")

    if fn.state_object:
        present = await page.evaluate(_STATE_OBJECT_PRESENT, fn.state_object)
        if not present:
            failed.append(f"window.{fn.state_object} is missing")

    if fn.container_selector and not await page.is_visible(fn.container_selector):
        failed.append(f"no visible container matching {fn.container_selector!r}")

    return ScriptOutcome(
        passed=not failed,
        reason="; ".join(failed) or "All smoke checks passed",
        observations={"title": title, "failed_checks": failed},
    )
