"""Rich terminal formatting for fixgate output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from fixgate.core.models import (
    Action,
    Backup,
    FixApplicationRecord,
    RollbackResult,
    RollbackSummary,
    ValidationReport,
)
from fixgate.validation.scoring import WEIGHTS

console = Console()
error_console = Console(stderr=True)


ACTION_COLORS = {
    Action.APPLY: "green",
    Action.APPLY_WITH_MONITORING: "yellow",
    Action.MANUAL_REVIEW: "yellow",
    Action.REJECT: "red",
}

STAGE_LABELS = {
    "syntax": "Syntax",
    "functional": "Functional",
    "regression": "Regression",
    "performance": "Performance",
    "side_effects": "Side effects",
}


def score_color(score: int) -> str:
    """Return color name based on score."""
    if score >= 90:
        return "green"
    elif score >= 50:
        return "yellow"
    return "red"


def progress_bar(score: int, width: int = 10) -> str:
    """Create a text-based progress bar."""
    filled = round(score / 100 * width)
    empty = width - filled
    color = score_color(score)
    return f"[{color}]{'█' * filled}{'░' * empty}[/{color}]"


def print_validation_report(report: ValidationReport) -> None:
    """Print the validation report card to terminal."""
    summary = report.summary
    color = ACTION_COLORS[summary.overall_result]

    lines = []
    lines.append("")
    lines.append(
        f"  Score:  {progress_bar(report.score)}  [{color}]{report.score}/100[/{color}]"
    )
    lines.append(
        f"  Recommendation:  [{color} bold]{summary.overall_result.value}[/{color} bold]"
        f"  (confidence {summary.confidence.value})"
    )
    lines.append(f"  [dim]{report.recommendation.reasoning}[/dim]")
    lines.append("")

    for name, weight in WEIGHTS.items():
        result = report.stages.get(name)
        label = STAGE_LABELS[name.value]
        if result is None:
            lines.append(f"  [dim]-  {label:<14} not run[/dim]")
        elif result.passed:
            lines.append(f"  [green]✅ {label:<14}[/green] +{weight:<3} [dim]{result.duration_ms:.0f}ms[/dim]")
        else:
            lines.append(f"  [red]❌ {label:<14}[/red]  0   [dim]{result.duration_ms:.0f}ms[/dim]")

    if summary.critical_issues:
        lines.append("")
        lines.append("  [red]Critical issues:[/red]")
        for issue in summary.critical_issues:
            lines.append(f"    - {issue}")

    if summary.recommendations:
        lines.append("")
        lines.append("  [cyan]Next steps:[/cyan]")
        for step in summary.recommendations:
            lines.append(f"    - {step}")

    lines.append("")
    lines.append(f"  {summary.stages_passed}/{summary.stages_total} stages passed | sandbox {report.sandbox_id}")
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Fix Validation  {report.context.target_file}[/bold]",
        border_style=color,
        padding=(0, 1),
    ))


def print_apply_record(record: FixApplicationRecord) -> None:
    """Print a single application record."""
    if record.success:
        console.print(f"  [green]✅ Applied[/green]  {record.message}")
        if record.backup is not None:
            console.print(f"     [dim]backup {record.backup.backup_id}; run `fixgate rollback` to revert[/dim]")
    else:
        console.print(f"  [red]❌ Failed[/red]  {record.message}")


def print_rollback_result(result: RollbackResult) -> None:
    if result.success:
        console.print(f"  [green]✅ {result.message}[/green]")
    else:
        console.print(f"  [red]❌ Rollback failed:[/red] {result.message}")


def print_rollback_summary(summary: RollbackSummary) -> None:
    """Print the outcome of rolling back several applies."""
    color = "green" if summary.successful == summary.requested else "yellow"
    console.print()
    console.print(
        f"  [{color}]{summary.successful}/{summary.requested} rollbacks succeeded.[/{color}]"
        f"  {summary.remaining} still available."
    )
    if summary.failure is not None:
        console.print(f"  [red]Stopped at: {summary.failure.reason}[/red]")
        console.print("  [red]The project tree may be in an inconsistent state.[/red]")
    console.print()


def print_backups(backups: list[Backup]) -> None:
    if not backups:
        console.print("\n  No backups available.\n")
        return

    console.print("\n  [bold]Backups (newest first)[/bold]\n")
    for backup in backups:
        stamp = backup.captured_at.strftime("%Y-%m-%d %H:%M:%S")
        note = "" if backup.existed_before else "  [dim](file created by fix)[/dim]"
        console.print(f"  {backup.backup_id}  {backup.original_file}  [{stamp}]{note}")
    console.print()


def get_progress() -> Progress:
    """Create a progress instance for validation runs."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    )
