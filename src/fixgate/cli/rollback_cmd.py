"""fixgate rollback command."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from fixgate.core.config import load_config
from fixgate.core.output import console, print_backups, print_rollback_summary
from fixgate.fix.applier import FixApplier


@click.command()
@click.option("--last", "count", type=click.IntRange(min=1), default=1, help="Number of applies to roll back")
@click.option("--list", "list_all", is_flag=True, help="List backups that can be rolled back")
@click.option("--target", "-t", "target", default=".", help="Project directory (default: current dir)")
def rollback(count: int, list_all: bool, target: str):
    """Roll back previously applied fixes, newest first.

    Stops at the first backup that cannot be restored.
    """
    project_path = Path(target).resolve()
    applier = FixApplier(project_path, load_config(project_path))

    if list_all:
        print_backups(applier.backup_store.list_backups())
        return

    if applier.resume() == 0:
        console.print("\n  No applied fixes to roll back.\n")
        return

    summary = applier.rollback_multiple(count)
    print_rollback_summary(summary)
    if summary.failure is not None:
        sys.exit(3)
