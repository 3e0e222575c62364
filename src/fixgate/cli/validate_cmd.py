"""fixgate validate command."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from fixgate.core.config import load_config
from fixgate.core.errors import FixGateError, ValidationRunError
from fixgate.core.models import Action
from fixgate.core.output import console, error_console, get_progress, print_validation_report
from fixgate.core.request import load_request
from fixgate.validation.pipeline import FixValidator


@click.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--target", "-t", "target", default=".", help="Project directory (default: current dir)")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option("--strict", is_flag=True, help="Exit non-zero unless the recommendation is APPLY")
def validate(request_file: Path, target: str, as_json: bool, strict: bool):
    """Validate a proposed fix in a sandbox without touching the project.

    REQUEST_FILE is a JSON file with "fix", "error" and "context" objects.
    """
    project_path = Path(target).resolve()
    config = load_config(project_path)

    try:
        request = load_request(request_file)
    except FixGateError as exc:
        error_console.print(f"  [red]Invalid fix request:[/red] {exc}")
        sys.exit(2)

    validator = FixValidator(project_path, config)
    try:
        if as_json:
            report = validator.validate_fix_sync(request.fix, request.error, request.context)
        else:
            with get_progress() as progress:
                progress.add_task("Validating fix in sandbox...", total=None)
                report = validator.validate_fix_sync(request.fix, request.error, request.context)
    except ValidationRunError as exc:
        error_console.print(f"  [red]Validation could not run:[/red] {exc}")
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        print_validation_report(report)
        console.print()

    if strict and report.recommendation.action is not Action.APPLY:
        sys.exit(1)
