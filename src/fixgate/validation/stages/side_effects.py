"""Side-effect stage: anything the fix changed beyond what it claims to change.

Compares the mutated sandbox against the untouched project:

* files other than the target that were added, removed or modified (MEDIUM)
* new global state written by the target or any other changed file (HIGH)
* new third-party dependencies, declared or imported (LOW)
"""

from __future__ import annotations

import ast
import asyncio
import json
import logging
import re
import tomllib
from pathlib import Path

from fixgate.core.models import SideEffect, Severity, StageName, StageResult
from fixgate.sandbox.tree import hash_tree
from fixgate.validation.parsing import JS_SUFFIXES, PYTHON_SUFFIXES
from fixgate.validation.stages.base import StageContext, ValidationStage

logger = logging.getLogger(__name__)

_JS_GLOBAL_ASSIGN = re.compile(
    r"\b(?:window|globalThis|self|global)\s*"
    r"(?:\.\s*([A-Za-z_$][\w$]*)|\[\s*['\"]([^'\"]+)['\"]\s*\])"
    r"\s*=(?!=)"
)
_JS_IMPORT = re.compile(
    r"""(?:\bimport\s+(?:[^'";]*?\sfrom\s+)?|\bimport\s*\(\s*|\brequire\s*\(\s*)['"]([^'"]+)['"]"""
)
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_SEVERITY_ORDER = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class SideEffectStage(ValidationStage):
    name = StageName.SIDE_EFFECTS
    description = "No unexpected file changes, global state or dependencies"

    async def run(self, ctx: StageContext) -> StageResult:
        effects = await asyncio.to_thread(self._detect, ctx)
        highest = max((e.severity for e in effects), key=_SEVERITY_ORDER.__getitem__, default=None)
        return self._result(
            passed=not effects,
            details={
                "detected": bool(effects),
                "effects": [e.to_dict() for e in effects],
                "highest_severity": highest.value if highest else None,
            },
            error_count=len(effects),
        )

    def _detect(self, ctx: StageContext) -> list[SideEffect]:
        before_root = ctx.project_path
        after_root = ctx.sandbox.root_path
        target = ctx.target_rel
        effects: list[SideEffect] = []

        changed = unexpected_file_changes(
            before_root, after_root, target, ctx.config.exclude, ctx.skip_paths
        )
        if changed:
            effects.append(
                SideEffect(
                    type="unexpected-file-changes",
                    severity=Severity.MEDIUM,
                    items=changed,
                    message=f"{len(changed)} file(s) changed besides {target.as_posix()}",
                )
            )

        new_globals: set[str] = set()
        new_imports: set[str] = set()
        for rel in [target, *(Path(p) for p in changed)]:
            before_source = _read(before_root / rel)
            after_source = _read(after_root / rel)
            new_globals |= global_writes(after_source, rel.suffix) - global_writes(
                before_source, rel.suffix
            )
            new_imports |= imported_modules(after_source, rel.suffix) - imported_modules(
                before_source, rel.suffix
            )

        if new_globals:
            items = sorted(new_globals)
            effects.append(
                SideEffect(
                    type="global-pollution",
                    severity=Severity.HIGH,
                    items=items,
                    message=f"New global state: {', '.join(items)}",
                )
            )

        new_deps = declared_dependencies(after_root) - declared_dependencies(before_root)
        new_deps |= new_imports
        if new_deps:
            items = sorted(new_deps)
            effects.append(
                SideEffect(
                    type="new-dependencies",
                    severity=Severity.LOW,
                    items=items,
                    message=f"New dependencies: {', '.join(items)}",
                )
            )

        return effects


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def unexpected_file_changes(
    before_root: Path,
    after_root: Path,
    target: Path,
    exclude: list[str],
    skip: tuple[Path, ...] = (),
) -> list[str]:
    """Relative paths added, removed or modified anywhere except *target*.

    *skip* lists absolute directories under *before_root*; the same relative
    directories are skipped in *after_root*.
    """
    before_root = before_root.resolve()
    after_skip = []
    for path in skip:
        try:
            after_skip.append(after_root / Path(path).resolve().relative_to(before_root))
        except ValueError:
            continue
    before = hash_tree(before_root, exclude, skip)
    after = hash_tree(after_root, exclude, after_skip)
    skip_target = target.as_posix()
    changed = {
        path
        for path in before.keys() | after.keys()
        if path != skip_target and before.get(path) != after.get(path)
    }
    return sorted(changed)


def global_writes(source: str, suffix: str) -> set[str]:
    if not source:
        return set()
    if suffix in JS_SUFFIXES:
        return {m.group(1) or m.group(2) for m in _JS_GLOBAL_ASSIGN.finditer(source)}
    if suffix in PYTHON_SUFFIXES:
        return _python_global_writes(source)
    return set()


def _python_global_writes(source: str) -> set[str]:
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return set()

    names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Global):
            names.update(node.names)
        elif isinstance(node, (ast.Assign, ast.AugAssign, ast.AnnAssign)):
            targets = node.targets if isinstance(node, ast.Assign) else [node.target]
            for t in targets:
                if (
                    isinstance(t, ast.Attribute)
                    and isinstance(t.value, ast.Name)
                    and t.value.id == "builtins"
                ):
                    names.add(f"builtins.{t.attr}")
        elif (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == "setattr"
            and len(node.args) >= 2
            and isinstance(node.args[0], ast.Name)
            and node.args[0].id == "builtins"
            and isinstance(node.args[1], ast.Constant)
            and isinstance(node.args[1].value, str)
        ):
            names.add(f"builtins.{node.args[1].value}")
    return names


def imported_modules(source: str, suffix: str) -> set[str]:
    """Top-level third-party module names imported by *source*."""
    if not source:
        return set()
    if suffix in JS_SUFFIXES:
        return {
            spec
            for spec in (m.group(1) for m in _JS_IMPORT.finditer(source))
            if not spec.startswith((".", "/"))
        }
    if suffix in PYTHON_SUFFIXES:
        try:
            tree = ast.parse(source)
        except SyntaxError:
            return set()
        modules: set[str] = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                modules.add(node.module.split(".")[0])
        return modules
    return set()


def declared_dependencies(root: Path) -> set[str]:
    """Dependencies named in the root package.json, requirements*.txt and pyproject.toml."""
    deps: set[str] = set()

    package_json = root / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Skipping unreadable %s: %s", package_json, exc)
        else:
            for section in ("dependencies", "devDependencies", "peerDependencies"):
                deps.update((data.get(section) or {}).keys())

    for requirements in sorted(root.glob("requirements*.txt")):
        for line in _read(requirements).splitlines():
            if line.strip().startswith(("#", "-")):
                continue
            match = _REQUIREMENT_NAME.match(line)
            if match:
                deps.add(match.group(1).lower())

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            with open(pyproject, "rb") as f:
                project = tomllib.load(f).get("project", {})
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.debug("Skipping unreadable %s: %s", pyproject, exc)
        else:
            for requirement in project.get("dependencies", []):
                match = _REQUIREMENT_NAME.match(requirement)
                if match:
                    deps.add(match.group(1).lower())

    return deps


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
