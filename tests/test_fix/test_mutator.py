"""Tests for the four fix mutation strategies."""

from __future__ import annotations

from pathlib import Path

import pytest

from fixgate.core.errors import InvalidFixError, MutationIOError, UnsupportedFixKindError
from fixgate.core.models import ApplicationContext, Fix, FixKind
from fixgate.fix.mutator import FixMutator, resolve_target


@pytest.fixture
def mutator() -> FixMutator:
    return FixMutator()


def _ctx(target: str, line: int | None = None) -> ApplicationContext:
    return ApplicationContext(target_file=Path(target), target_line=line)


class TestSearchReplace:
    def test_replaces_pattern(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("foo();\n")
        fix = Fix(kind=FixKind.SEARCH_REPLACE, search_pattern="foo", replacement="bar")

        mutator.apply(fix, tmp_path, _ctx("app.js"))

        assert (tmp_path / "app.js").read_text() == "bar();\n"

    def test_replaces_every_occurrence(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("foo(); foo(); foo();")
        fix = Fix(kind=FixKind.SEARCH_REPLACE, search_pattern=r"foo\(\)", replacement="bar()")

        mutator.apply(fix, tmp_path, _ctx("app.js"))

        assert (tmp_path / "app.js").read_text() == "bar(); bar(); bar();"

    def test_group_references(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("let count = 1;")
        fix = Fix(kind=FixKind.SEARCH_REPLACE, search_pattern=r"let (\w+)", replacement=r"const \1")

        mutator.apply(fix, tmp_path, _ctx("app.js"))

        assert (tmp_path / "app.js").read_text() == "const count = 1;"

    def test_invalid_pattern(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("x")
        fix = Fix(kind=FixKind.SEARCH_REPLACE, search_pattern="(unclosed", replacement="y")
        with pytest.raises(InvalidFixError):
            mutator.apply(fix, tmp_path, _ctx("app.js"))
        assert (tmp_path / "app.js").read_text() == "x"

    def test_missing_replacement(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("x")
        with pytest.raises(InvalidFixError):
            mutator.apply(Fix(kind=FixKind.SEARCH_REPLACE, search_pattern="x"), tmp_path, _ctx("app.js"))

    def test_missing_file(self, mutator: FixMutator, tmp_path: Path):
        fix = Fix(kind=FixKind.SEARCH_REPLACE, search_pattern="a", replacement="b")
        with pytest.raises(MutationIOError):
            mutator.apply(fix, tmp_path, _ctx("missing.js"))


class TestLineInsert:
    def test_inserts_before_target_line(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("one\ntwo\nthree")
        fix = Fix(kind=FixKind.LINE_INSERT, content="inserted")

        mutator.apply(fix, tmp_path, _ctx("app.js", line=2))

        assert (tmp_path / "app.js").read_text() == "one\ninserted\ntwo\nthree"

    def test_falls_back_to_fix_insertion_line(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("one\ntwo")
        fix = Fix(kind=FixKind.LINE_INSERT, content="first", insertion_line=1)

        mutator.apply(fix, tmp_path, _ctx("app.js"))

        assert (tmp_path / "app.js").read_text() == "first\none\ntwo"

    def test_appends_without_line(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("one\ntwo")
        mutator.apply(Fix(kind=FixKind.LINE_INSERT, content="last"), tmp_path, _ctx("app.js"))

        assert (tmp_path / "app.js").read_text() == "one\ntwo\nlast"

    def test_preserves_crlf(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_bytes(b"one\r\ntwo\r\n")
        mutator.apply(Fix(kind=FixKind.LINE_INSERT, content="x\r"), tmp_path, _ctx("app.js", line=2))

        assert (tmp_path / "app.js").read_bytes() == b"one\r\nx\r\ntwo\r\n"


class TestReplaceAndGeneric:
    def test_full_replace(self, mutator: FixMutator, tmp_path: Path):
        (tmp_path / "app.js").write_text("old")
        mutator.apply(Fix(kind=FixKind.FULL_REPLACE, content="new"), tmp_path, _ctx("app.js"))
        assert (tmp_path / "app.js").read_text() == "new"

    def test_generic_creates_parent_dirs(self, mutator: FixMutator, tmp_path: Path):
        written = mutator.apply(
            Fix(kind=FixKind.GENERIC, content="export {};"), tmp_path, _ctx("src/new/util.js")
        )
        assert written == (tmp_path / "src" / "new" / "util.js").resolve()
        assert written.read_text() == "export {};"


class TestTargetResolution:
    def test_path_escaping_root_rejected(self, mutator: FixMutator, tmp_path: Path):
        with pytest.raises(InvalidFixError):
            mutator.apply(Fix(kind=FixKind.GENERIC, content="x"), tmp_path, _ctx("../outside.js"))

    def test_absolute_path_inside_root(self, tmp_path: Path):
        assert resolve_target(tmp_path, tmp_path / "a.js") == (tmp_path / "a.js").resolve()

    def test_unsupported_kind(self, mutator: FixMutator, tmp_path: Path):
        mutator._strategies.pop(FixKind.GENERIC)
        with pytest.raises(UnsupportedFixKindError):
            mutator.apply(Fix(kind=FixKind.GENERIC, content="x"), tmp_path, _ctx("a.js"))
