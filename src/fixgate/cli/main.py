"""Click CLI entry point for fixgate."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from fixgate._version import __version__
from fixgate.core.output import error_console


@click.group()
@click.version_option(version=__version__, prog_name="fixgate")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """fixgate - Sandbox validation for machine-proposed fixes.

    Validate a fix in an isolated copy of your project, then apply it with
    automatic backup and rollback.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
    )


# Import and register subcommands
from fixgate.cli.validate_cmd import validate  # noqa: E402
from fixgate.cli.apply_cmd import apply  # noqa: E402
from fixgate.cli.rollback_cmd import rollback  # noqa: E402
from fixgate.cli.cleanup_cmd import cleanup  # noqa: E402

cli.add_command(validate)
cli.add_command(apply)
cli.add_command(rollback)
cli.add_command(cleanup)


if __name__ == "__main__":
    cli()
