"""Tests for the fixgate CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from fixgate.cli import apply_cmd, validate_cmd
from fixgate.cli.main import cli
from fixgate.core.models import StageName, StageResult, ValidationReport
from fixgate.validation import scoring


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "app.js").write_text("function start() {\n  return foo();\n}\n")
    return root


@pytest.fixture
def request_file(tmp_path: Path) -> Path:
    path = tmp_path / "fix.json"
    path.write_text(json.dumps({
        "fix": {"kind": "search_replace", "search_pattern": "foo", "replacement": "bar"},
        "error": {"kind": "console-error", "message": "foo is not defined"},
        "context": {"target_file": "app.js"},
    }))
    return path


def _fake_validate(failing: set[StageName]):
    def validate_fix_sync(self, fix, error, context):
        stages = {n: StageResult(name=n, passed=n not in failing) for n in StageName}
        score = scoring.compute_score(stages)
        rec = scoring.recommend(score)
        return ValidationReport(
            sandbox_id="sandbox_1_test",
            fix=fix,
            error=error,
            context=context,
            stages=stages,
            score=score,
            recommendation=rec,
            summary=scoring.summarize(stages, score, rec),
        )

    return validate_fix_sync


class TestValidateCommand:
    def test_json_report(self, project: Path, request_file: Path, monkeypatch):
        monkeypatch.setattr(validate_cmd.FixValidator, "validate_fix_sync", _fake_validate(set()))

        result = CliRunner().invoke(cli, ["validate", str(request_file), "-t", str(project), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["score"] == 100
        assert data["recommendation"]["action"] == "APPLY"

    def test_strict_fails_below_apply(self, project: Path, request_file: Path, monkeypatch):
        monkeypatch.setattr(
            validate_cmd.FixValidator, "validate_fix_sync", _fake_validate({StageName.SYNTAX})
        )

        result = CliRunner().invoke(
            cli, ["validate", str(request_file), "-t", str(project), "--json", "--strict"]
        )

        assert result.exit_code == 1

    def test_invalid_request(self, project: Path, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("{}")

        result = CliRunner().invoke(cli, ["validate", str(bad), "-t", str(project)])

        assert result.exit_code == 2

    def test_non_object_fix_is_rejected(self, project: Path, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"fix": "foo -> bar", "context": {"target_file": "app.js"}}))

        result = CliRunner().invoke(cli, ["validate", str(bad), "-t", str(project)])

        assert result.exit_code == 2


class TestApplyAndRollback:
    def test_apply_then_rollback(self, project: Path, request_file: Path):
        original = (project / "app.js").read_bytes()
        runner = CliRunner()

        result = runner.invoke(
            cli, ["apply", str(request_file), "-t", str(project), "--skip-validation", "--yes"]
        )
        assert result.exit_code == 0, result.output
        assert "bar()" in (project / "app.js").read_text()

        result = runner.invoke(cli, ["rollback", "--list", "-t", str(project)])
        assert result.exit_code == 0
        assert "Backups" in result.output

        result = runner.invoke(cli, ["rollback", "-t", str(project)])
        assert result.exit_code == 0, result.output
        assert (project / "app.js").read_bytes() == original

        result = runner.invoke(cli, ["rollback", "-t", str(project)])
        assert "No applied fixes" in result.output

    def test_apply_refuses_rejected_fix(self, project: Path, request_file: Path, monkeypatch):
        monkeypatch.setattr(
            apply_cmd.FixValidator,
            "validate_fix_sync",
            _fake_validate({StageName.FUNCTIONAL, StageName.REGRESSION}),
        )
        original = (project / "app.js").read_bytes()

        result = CliRunner().invoke(cli, ["apply", str(request_file), "-t", str(project), "--yes"])

        assert result.exit_code == 1
        assert (project / "app.js").read_bytes() == original

    def test_dry_run(self, project: Path, request_file: Path):
        original = (project / "app.js").read_bytes()

        result = CliRunner().invoke(
            cli, ["apply", str(request_file), "-t", str(project), "--skip-validation", "--dry-run"]
        )

        assert result.exit_code == 0, result.output
        assert (project / "app.js").read_bytes() == original

    def test_cleanup(self, project: Path, request_file: Path):
        runner = CliRunner()
        runner.invoke(cli, ["apply", str(request_file), "-t", str(project), "--skip-validation", "--yes"])

        result = runner.invoke(cli, ["cleanup", "-t", str(project), "--older-than=-1"])

        assert result.exit_code == 0, result.output
        assert "Removed 1 backup" in result.output
