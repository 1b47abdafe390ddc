"""Rich rendering for pipeline CLI commands."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from globtim_pipeline.coverage import MissingParams, ParameterCoverage, format_domain
from globtim_pipeline.orchestrator import AnalysisSummary, PipelineStatus
from globtim_pipeline.registry.models import ExperimentEntry

# Degree ranges listed under the coverage table before truncating
_MAX_DEGREE_RANGES = 10


def display_status(console: Console, status: PipelineStatus) -> None:
    """Print pipeline status counts."""
    last_scan = "never" if status.last_scan is None else f"{status.last_scan:%Y-%m-%d %H:%M:%S}"
    console.print()
    console.print("[bold]Pipeline Status[/bold]")
    console.print(f"  Results root: [bold]{status.results_root}[/bold]")
    console.print(f"  Last scan:    {last_scan}")
    console.print()
    console.print(f"  [cyan]Total:[/cyan]     {status.total}")
    console.print(f"  [yellow]Pending:[/yellow]   {status.pending}")
    console.print(f"  [cyan]Analyzing:[/cyan] {status.analyzing}")
    console.print(f"  [green]Analyzed:[/green]  {status.analyzed}")
    console.print(f"  [red]Failed:[/red]    {status.failed}")


def display_coverage(console: Console, coverage: ParameterCoverage) -> None:
    """Print the GN x domain coverage matrix."""
    if coverage.is_empty:
        console.print("No experiments in registry.")
        return

    table = Table(title="Parameter Coverage: GN × Domain")
    table.add_column("GN", style="cyan")
    for domain in coverage.domain_values:
        table.add_column(format_domain(domain), justify="center")

    for gn, row in zip(coverage.gn_values, coverage.matrix):
        table.add_row(f"GN={gn}", *(str(c) if c > 0 else "-" for c in row))

    console.print(table)
    console.print(
        f"Total: {coverage.total_experiments} experiments, "
        f"{coverage.unique_param_combinations} unique parameter combinations"
    )

    if coverage.degree_combinations:
        shown = coverage.degree_combinations[:_MAX_DEGREE_RANGES]
        degrees = ", ".join(f"{lo}-{hi}" for lo, hi in shown)
        if len(coverage.degree_combinations) > _MAX_DEGREE_RANGES:
            degrees += ", ..."
        console.print(f"Degree ranges: {degrees}")


def display_entries(console: Console, entries: list[ExperimentEntry], limit: int = 20) -> None:
    """Print query results."""
    if not entries:
        console.print("No experiments found matching criteria.")
        return

    table = Table(title=f"Found {len(entries)} experiments")
    table.add_column("Name", style="cyan")
    table.add_column("GN", justify="right")
    table.add_column("Degrees")
    table.add_column("Domain", justify="right")
    table.add_column("Seed")
    table.add_column("Status")
    table.add_column("Completed", style="dim")

    for entry in entries[:limit]:
        completed = "" if entry.completed_at is None else f"{entry.completed_at:%Y-%m-%d %H:%M}"
        p = entry.params
        if p is None:
            table.add_row(entry.name, "-", "-", "-", "-", entry.status.name, completed)
            continue
        table.add_row(
            entry.name,
            str(p.gn),
            f"{p.deg_min}-{p.deg_max}",
            format_domain(p.domain),
            "" if p.seed is None else str(p.seed),
            entry.status.name,
            completed,
        )

    console.print(table)
    if len(entries) > limit:
        console.print(f"  ... and {len(entries) - limit} more")


def display_missing(console: Console, missing: list[MissingParams]) -> None:
    """Print missing parameter combinations."""
    if not missing:
        console.print("[green]✓ All target parameter combinations are covered[/green]")
        return

    table = Table(title=f"{len(missing)} missing parameter combinations")
    table.add_column("GN", justify="right")
    table.add_column("Domain", justify="right")
    table.add_column("Degrees")
    for m in missing:
        table.add_row(str(m.gn), format_domain(m.domain), f"{m.deg_min}-{m.deg_max}")
    console.print(table)


class RichObserver:
    """Orchestrator observer that prints progress to a rich console."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def on_scan_complete(self, new_count: int) -> None:
        if new_count > 0:
            self.console.print(f"[green]Found {new_count} new experiments[/green]")

    def on_analysis_start(self, entry: ExperimentEntry, index: int, total: int) -> None:
        self.console.print(f"[dim][{index}/{total}][/dim] [cyan]▶ Analyzing:[/cyan] {entry.name}")

    def on_analysis_complete(self, entry: ExperimentEntry) -> None:
        self.console.print(f"[green]✓[/green] Analysis complete: {entry.name}")

    def on_analysis_failed(self, entry: ExperimentEntry, error: Exception) -> None:
        self.console.print(f"[red]✗[/red] Analysis failed: {entry.name}")
        self.console.print(f"[dim]  Error: {error}[/dim]")

    def on_batch_complete(self, summary: AnalysisSummary) -> None:
        if summary.total == 0:
            self.console.print("[dim]No pending experiments to analyze.[/dim]")
            return
        self.console.print(
            f"[green]Analyzed:[/green] {summary.analyzed}  "
            f"[red]Failed:[/red] {summary.failed}  "
            f"[dim]Total pending: {summary.total}[/dim]"
        )
