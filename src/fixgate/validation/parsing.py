"""Language front ends used to decide whether source files are syntactically valid.

Python files go through :mod:`ast`, JavaScript through Tree-sitter, JSON through
:mod:`json`. On top of the parse, a bracket-balance scan walks the token stream
so that input a lenient, error-recovering parser would accept is still caught.
"""

from __future__ import annotations

import ast
import io
import json
import logging
import threading
import tokenize
from dataclasses import dataclass
from pathlib import Path

from tree_sitter_language_pack import get_parser

logger = logging.getLogger(__name__)

PYTHON_SUFFIXES = frozenset({".py"})
JS_SUFFIXES = frozenset({".js", ".mjs", ".cjs"})
JSON_SUFFIXES = frozenset({".json"})
SOURCE_SUFFIXES = PYTHON_SUFFIXES | JS_SUFFIXES | JSON_SUFFIXES

MAX_BRACKET_ISSUES_PER_FILE = 10

_OPENERS = {"(": ")", "[": "]", "{": "}", "${": "}"}
_CLOSERS = frozenset(_OPENERS.values())

_parsers = threading.local()


@dataclass(frozen=True)
class SyntaxIssue:
    file: str
    message: str
    type: str  # "syntax-error", "bracket-mismatch", "read-error"
    line: int | None = None

    def to_dict(self) -> dict:
        return {"file": self.file, "message": self.message, "type": self.type, "line": self.line}


def is_source_file(path: Path) -> bool:
    return path.suffix.lower() in SOURCE_SUFFIXES


def check_file(path: Path, display_name: str | None = None) -> list[SyntaxIssue]:
    """Parse one file and scan its brackets. An empty list means it is valid."""
    name = display_name or str(path)
    try:
        source = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return [SyntaxIssue(file=name, message=f"Cannot read file: {exc}", type="read-error")]
    return check_source(source, path.suffix.lower(), name)


def check_source(source: str, suffix: str, name: str) -> list[SyntaxIssue]:
    if suffix in PYTHON_SUFFIXES:
        return _check_python(source, name)
    if suffix in JS_SUFFIXES:
        return _check_javascript(source, name)
    if suffix in JSON_SUFFIXES:
        return _check_json(source, name)
    return []


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------


def _check_python(source: str, name: str) -> list[SyntaxIssue]:
    try:
        ast.parse(source, filename=name)
    except SyntaxError as exc:
        return [SyntaxIssue(file=name, message=exc.msg, type="syntax-error", line=exc.lineno)]
    except ValueError as exc:
        return [SyntaxIssue(file=name, message=str(exc), type="syntax-error")]

    tokens: list[tuple[str, int]] = []
    try:
        for tok in tokenize.generate_tokens(io.StringIO(source).readline):
            if tok.type == tokenize.OP and (tok.string in _OPENERS or tok.string in _CLOSERS):
                tokens.append((tok.string, tok.start[0]))
    except (tokenize.TokenError, SyntaxError) as exc:
        return [SyntaxIssue(file=name, message=f"Tokenizer error: {exc}", type="syntax-error")]
    return scan_brackets(tokens, name)


# ---------------------------------------------------------------------------
# JavaScript
# ---------------------------------------------------------------------------


def _js_parser():
    parser = getattr(_parsers, "javascript", None)
    if parser is None:
        parser = get_parser("javascript")
        _parsers.javascript = parser
    return parser


def _check_javascript(source: str, name: str) -> list[SyntaxIssue]:
    tree = _js_parser().parse(source.encode("utf-8"))
    root = tree.root_node

    issues: list[SyntaxIssue] = []
    tokens: list[tuple[str, int]] = []

    # Depth-first, left-to-right walk so leaf tokens come out in source order.
    stack = [root]
    while stack:
        node = stack.pop()
        line = node.start_point[0] + 1

        if node.is_missing:
            kind = "bracket-mismatch" if node.type in _CLOSERS else "syntax-error"
            issues.append(
                SyntaxIssue(file=name, message=f"Missing '{node.type}'", type=kind, line=line)
            )
            continue
        if node.type == "ERROR":
            issues.append(
                SyntaxIssue(file=name, message="Unexpected token", type="syntax-error", line=line)
            )

        if node.child_count == 0:
            if node.type in _OPENERS or node.type in _CLOSERS:
                tokens.append((node.type, line))
            continue
        stack.extend(reversed(node.children))

    if root.has_error and not issues:
        issues.append(SyntaxIssue(file=name, message="Unparseable source", type="syntax-error"))

    issues.extend(scan_brackets(tokens, name))
    return issues


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _check_json(source: str, name: str) -> list[SyntaxIssue]:
    try:
        json.loads(source)
    except json.JSONDecodeError as exc:
        return [SyntaxIssue(file=name, message=exc.msg, type="syntax-error", line=exc.lineno)]
    return []


# ---------------------------------------------------------------------------
# Bracket balance
# ---------------------------------------------------------------------------


def scan_brackets(tokens: list[tuple[str, int]], name: str) -> list[SyntaxIssue]:
    """Check that bracket tokens ``(text, line)`` nest and close properly."""
    issues: list[SyntaxIssue] = []
    stack: list[tuple[str, int]] = []

    for text, line in tokens:
        if len(issues) >= MAX_BRACKET_ISSUES_PER_FILE:
            break
        if text in _OPENERS:
            stack.append((text, line))
            continue
        if not stack:
            issues.append(
                SyntaxIssue(file=name, message=f"Unmatched '{text}'", type="bracket-mismatch", line=line)
            )
            continue
        opener, opened_at = stack.pop()
        if _OPENERS[opener] != text:
            issues.append(
                SyntaxIssue(
                    file=name,
                    message=f"'{opener}' opened on line {opened_at} closed by '{text}'",
                    type="bracket-mismatch",
                    line=line,
                )
            )

    for opener, opened_at in stack[: max(0, MAX_BRACKET_ISSUES_PER_FILE - len(issues))]:
        issues.append(
            SyntaxIssue(file=name, message=f"Unclosed '{opener}'", type="bracket-mismatch", line=opened_at)
        )
    return issues
