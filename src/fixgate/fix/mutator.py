"""Applies a Fix to a target file under a given root (sandbox or production)."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from fixgate.core.errors import InvalidFixError, MutationIOError, UnsupportedFixKindError
from fixgate.core.models import ApplicationContext, Fix, FixKind

logger = logging.getLogger(__name__)


def resolve_target(root: Path, target_file: Path) -> Path:
    """Resolve *target_file* under *root*, refusing paths that escape it."""
    root = root.resolve()
    candidate = target_file if target_file.is_absolute() else root / target_file
    resolved = candidate.resolve()
    if not resolved.is_relative_to(root):
        raise InvalidFixError(
            f"Target file escapes the project root {root}",
            target_file=target_file,
        )
    return resolved


class FixMutator:
    """Writes a fix into a file using one of four strategies."""

    def __init__(self) -> None:
        self._strategies = {
            FixKind.FULL_REPLACE: self._full_replace,
            FixKind.LINE_INSERT: self._line_insert,
            FixKind.SEARCH_REPLACE: self._search_replace,
            FixKind.GENERIC: self._generic,
        }

    def apply(self, fix: Fix, root: Path, context: ApplicationContext) -> Path:
        """Mutate ``context.target_file`` under *root*. Returns the written path."""
        strategy = self._strategies.get(fix.kind)
        if strategy is None:
            raise UnsupportedFixKindError(
                f"Unsupported fix kind: {fix.kind!r}",
                target_file=context.target_file,
            )

        target = resolve_target(root, context.target_file)
        strategy(fix, target, context)
        logger.info("Applied %s fix to %s", fix.kind.value, target)
        return target

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _full_replace(self, fix: Fix, target: Path, context: ApplicationContext) -> None:
        self._write(target, fix.content)

    def _line_insert(self, fix: Fix, target: Path, context: ApplicationContext) -> None:
        lines = self._read(target).split("\n")
        line = context.target_line if context.target_line is not None else fix.insertion_line
        if line and line > 0:
            lines.insert(line - 1, fix.content)
        else:
            lines.append(fix.content)
        self._write(target, "\n".join(lines))

    def _search_replace(self, fix: Fix, target: Path, context: ApplicationContext) -> None:
        if not fix.search_pattern or fix.replacement is None:
            raise InvalidFixError(
                "search_replace fix needs both search_pattern and replacement",
                target_file=context.target_file,
            )
        try:
            pattern = re.compile(fix.search_pattern)
        except re.error as exc:
            raise InvalidFixError(
                f"Invalid search pattern {fix.search_pattern!r}: {exc}",
                target_file=context.target_file,
            ) from exc

        content = self._read(target)
        try:
            new_content = pattern.sub(fix.replacement, content)
        except (re.error, IndexError) as exc:
            raise InvalidFixError(
                f"Invalid replacement {fix.replacement!r}: {exc}",
                target_file=context.target_file,
            ) from exc
        self._write(target, new_content)

    def _generic(self, fix: Fix, target: Path, context: ApplicationContext) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MutationIOError(
                f"Cannot create parent directories: {exc}", target_file=target
            ) from exc
        self._write(target, fix.content)

    # ------------------------------------------------------------------
    # IO
    # ------------------------------------------------------------------

    @staticmethod
    def _read(target: Path) -> str:
        try:
            with open(target, encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise MutationIOError(f"Cannot read file: {exc}", target_file=target) from exc

    @staticmethod
    def _write(target: Path, content: str) -> None:
        try:
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as exc:
            raise MutationIOError(f"Cannot write file: {exc}", target_file=target) from exc
