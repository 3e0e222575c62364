"""fixgate cleanup command."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import click

from fixgate.core.config import load_config
from fixgate.core.output import console
from fixgate.fix.applier import FixApplier


@click.command()
@click.option("--older-than", type=float, default=None, help="Age in hours (default: apply.backup_max_age_hours)")
@click.option("--target", "-t", "target", default=".", help="Project directory (default: current dir)")
def cleanup(older_than: float | None, target: str):
    """Delete backups older than the configured age."""
    project_path = Path(target).resolve()
    applier = FixApplier(project_path, load_config(project_path))

    age = timedelta(hours=older_than) if older_than is not None else None
    evicted = applier.cleanup_backups(age)
    if not evicted:
        console.print("\n  No backups old enough to remove.\n")
        return
    console.print(f"\n  [green]Removed {len(evicted)} backup(s).[/green]\n")
