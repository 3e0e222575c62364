"""Configuration management for fixgate (fixgate.toml parsing + defaults)."""

from __future__ import annotations

import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SandboxConfig:
    root: str = ""

    def resolve_root(self, project_path: Path) -> Path:
        if not self.root:
            return Path(tempfile.gettempdir()) / "fixgate-sandboxes"
        root = Path(self.root).expanduser()
        if not root.is_absolute():
            root = project_path / root
        return root


@dataclass
class ValidationConfig:
    stage_timeout: float = 60.0
    load_timeout_ms: int = 10000
    settle_ms: int = 500
    console_window_ms: int = 3000
    headless: bool = True
    browser: str = "chromium"


@dataclass
class InteractionScript:
    """Scripted UI reproduction: click ``clicks`` in order, then check ``target``.

    When ``confirm`` is set and the target check passed, it is clicked too and
    the page must then hide ``hidden_after`` and show ``shown_after``.
    """

    clicks: list[str] = field(default_factory=list)
    target: str = ""
    expect: str = "enabled"  # "enabled", "disabled", "visible", "hidden"
    confirm: str = ""
    hidden_after: str = ""
    shown_after: str = ""


def _character_creation() -> InteractionScript:
    return InteractionScript(
        clicks=[
            '[data-choice="dust-road"]',
            '[data-choice="protect"]',
            '[data-choice="thunder"]',
        ],
        target="#begin-cultivation",
        expect="enabled",
        confirm="#begin-cultivation",
        hidden_after="#character-creation",
        shown_after="#game-interface",
    )


def _default_scripts() -> dict[str, InteractionScript]:
    # Keyed by error kind or by component; the component wins when both match.
    return {
        "character-creation-bug": _character_creation(),
        "character-creation": _character_creation(),
    }


@dataclass
class FunctionalConfig:
    expected_title: str = ""
    state_object: str = "gameState"
    container_selector: str = ".game-container, #game-container, main, .app"
    console_kinds: list[str] = field(
        default_factory=lambda: ["console-error", "runtime-error", "uncaught-exception"]
    )
    scripts: dict[str, InteractionScript] = field(default_factory=_default_scripts)


@dataclass
class PerformanceConfig:
    max_load_time_ms: float = 5000
    min_avg_fps: float = 30
    max_avg_memory_mb: float = 100
    window_ms: int = 5000


@dataclass
class RegressionConfig:
    commands: list[str] = field(default_factory=list)
    timeout: float = 300.0


@dataclass
class ApplyConfig:
    backup_dir: str = ".fixgate/backups"
    auto_rollback: bool = True
    history_limit: int = 100
    rollback_limit: int = 50
    backup_max_age_hours: float = 24.0

    def resolve_backup_dir(self, project_path: Path) -> Path:
        path = Path(self.backup_dir).expanduser()
        if not path.is_absolute():
            path = project_path / path
        return path


@dataclass
class FixGateConfig:
    """Complete fixgate configuration."""

    exclude: list[str] = field(
        default_factory=lambda: [
            ".git",
            ".hg",
            ".svn",
            "node_modules",
            "__pycache__",
            ".venv",
            "venv",
            "coverage",
            ".nyc_output",
            ".pytest_cache",
            ".fixgate",
            "test-sandbox",
        ]
    )
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    functional: FunctionalConfig = field(default_factory=FunctionalConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    regression: RegressionConfig = field(default_factory=RegressionConfig)
    apply: ApplyConfig = field(default_factory=ApplyConfig)


def load_config(project_path: Path | None = None) -> FixGateConfig:
    """Load configuration from fixgate.toml if present, otherwise return defaults."""
    config = FixGateConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / "fixgate.toml"
    if not config_file.exists():
        return config

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    if "general" in data:
        gen = data["general"]
        if "exclude" in gen:
            config.exclude = gen["exclude"]

    if "sandbox" in data:
        if "root" in data["sandbox"]:
            config.sandbox.root = data["sandbox"]["root"]

    if "validation" in data:
        v = data["validation"]
        for attr in (
            "stage_timeout",
            "load_timeout_ms",
            "settle_ms",
            "console_window_ms",
            "headless",
            "browser",
        ):
            if attr in v:
                setattr(config.validation, attr, v[attr])

    if "functional" in data:
        fn = data["functional"]
        for attr in ("expected_title", "state_object", "container_selector", "console_kinds"):
            if attr in fn:
                setattr(config.functional, attr, fn[attr])
        for kind, script in fn.get("scripts", {}).items():
            config.functional.scripts[kind] = InteractionScript(
                clicks=list(script.get("clicks", [])),
                target=script.get("target", ""),
                expect=script.get("expect", "enabled"),
                confirm=script.get("confirm", ""),
                hidden_after=script.get("hidden_after", ""),
                shown_after=script.get("shown_after", ""),
            )

    if "performance" in data:
        p = data["performance"]
        for attr in ("max_load_time_ms", "min_avg_fps", "max_avg_memory_mb", "window_ms"):
            if attr in p:
                setattr(config.performance, attr, p[attr])

    if "regression" in data:
        r = data["regression"]
        if "commands" in r:
            config.regression.commands = list(r["commands"])
        if "timeout" in r:
            config.regression.timeout = r["timeout"]

    if "apply" in data:
        a = data["apply"]
        for attr in (
            "backup_dir",
            "auto_rollback",
            "history_limit",
            "rollback_limit",
            "backup_max_age_hours",
        ):
            if attr in a:
                setattr(config.apply, attr, a[attr])

    return config

