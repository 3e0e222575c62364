"""fixgate apply command."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.prompt import Confirm

from fixgate.core.config import load_config
from fixgate.core.errors import (
    FixApplicationError,
    FixGateError,
    RollbackFailure,
    ValidationRunError,
)
from fixgate.core.output import (
    console,
    error_console,
    get_progress,
    print_apply_record,
    print_rollback_result,
    print_validation_report,
)
from fixgate.core.request import load_request
from fixgate.fix.applier import FixApplier
from fixgate.validation.pipeline import FixValidator


@click.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", "-t", "target", default=".", help="Project directory (default: current dir)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts")
@click.option(
    "--min-score",
    type=click.IntRange(0, 100),
    default=None,
    help="Apply when the score reaches this value (default: only on APPLY / APPLY_WITH_MONITORING)",
)
@click.option("--skip-validation", is_flag=True, help="Apply without running the sandbox validation")
@click.option("--dry-run", is_flag=True, help="Validate and report, but do not write anything")
def apply(
    request_file: Path,
    target: str,
    yes: bool,
    min_score: int | None,
    skip_validation: bool,
    dry_run: bool,
):
    """Validate a fix, then apply it to the project with a backup.

    A failed apply is rolled back automatically. Use `fixgate rollback` to
    revert applies that succeeded.
    """
    project_path = Path(target).resolve()
    config = load_config(project_path)

    try:
        request = load_request(request_file)
    except FixGateError as exc:
        error_console.print(f"  [red]Invalid fix request:[/red] {exc}")
        sys.exit(2)

    if not skip_validation:
        validator = FixValidator(project_path, config)
        try:
            with get_progress() as progress:
                progress.add_task("Validating fix in sandbox...", total=None)
                report = validator.validate_fix_sync(request.fix, request.error, request.context)
        except ValidationRunError as exc:
            error_console.print(f"  [red]Validation could not run:[/red] {exc}")
            sys.exit(2)

        print_validation_report(report)

        accepted = report.passed if min_score is None else report.score >= min_score
        if not accepted:
            console.print(f"\n  [red]Not applying:[/red] {report.recommendation.reasoning}.\n")
            sys.exit(1)

    if not yes and not dry_run:
        if not Confirm.ask(f"  Apply this fix to {request.context.target_file}?", default=False):
            console.print("  [dim]Skipped.[/dim]")
            return

    applier = FixApplier(project_path, config, dry_run=dry_run)
    try:
        record = applier.apply(request.fix, request.error, request.context)
    except RollbackFailure as exc:
        error_console.print(f"\n  [red bold]Rollback failed:[/red bold] {exc}")
        error_console.print("  [red]The project tree may be in an inconsistent state. Check it manually.[/red]\n")
        sys.exit(3)
    except FixApplicationError as exc:
        console.print(f"\n  [red]❌ Fix rejected:[/red] {exc}")
        if exc.rollback is not None:
            print_rollback_result(exc.rollback)
        console.print()
        sys.exit(1)
    except FixGateError as exc:
        error_console.print(f"\n  [red]Fix not applied:[/red] {exc}\n")
        sys.exit(1)

    console.print()
    print_apply_record(record)
    console.print()
