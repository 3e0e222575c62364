"""Tests for loading fix requests from JSON."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from fixgate.core.errors import InvalidFixError
from fixgate.core.models import FixKind
from fixgate.core.request import load_request


class TestLoadRequest:
    def test_loads_all_parts(self, tmp_path: Path):
        path = tmp_path / "fix.json"
        path.write_text(json.dumps({
            "fix": {"kind": "line_insert", "content": "// guard", "insertion_line": 2},
            "error": {"kind": "console-error", "message": "x is undefined"},
            "context": {"target_file": "src/app.js"},
        }))

        request = load_request(path)

        assert request.fix.kind is FixKind.LINE_INSERT
        assert request.error.message == "x is undefined"
        assert request.context.target_file == Path("src/app.js")

    def test_missing_error_defaults_to_unknown(self, tmp_path: Path):
        path = tmp_path / "fix.json"
        path.write_text(json.dumps({"fix": {"content": "x"}, "context": {"target_file": "a.js"}}))

        assert load_request(path).error.kind == "unknown"

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "fix.json"
        path.write_text("{not json")
        with pytest.raises(InvalidFixError):
            load_request(path)

    def test_missing_context(self, tmp_path: Path):
        path = tmp_path / "fix.json"
        path.write_text(json.dumps({"fix": {"content": "x"}}))
        with pytest.raises(InvalidFixError):
            load_request(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"fix": "replace foo", "context": {"target_file": "a.js"}},
            {"fix": {"content": "x"}, "context": ["a.js"]},
            {"fix": {"content": "x"}, "context": {"target_file": "a.js"}, "error": "boom"},
            {"fix": None, "context": {"target_file": "a.js"}},
        ],
    )
    def test_non_object_parts(self, tmp_path: Path, data: dict):
        path = tmp_path / "fix.json"
        path.write_text(json.dumps(data))
        with pytest.raises(InvalidFixError, match="must be an object"):
            load_request(path)
