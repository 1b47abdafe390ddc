"""Pipeline CLI commands: scan, analyze, watch, retry.

These commands mutate the registry and save it after every step.
"""

from __future__ import annotations

import signal
import threading
from datetime import datetime
from typing import Annotated

import typer

from globtim_pipeline.cli.context import get_context
from globtim_pipeline.cli.display import RichObserver
from globtim_pipeline.cli.output import (
    console,
    log_info,
    log_separator,
    log_success,
    output_json,
)
from globtim_pipeline.orchestrator import WatchIteration
from globtim_pipeline.registry import save_registry


def scan_experiments(
    ctx: typer.Context,
    objective: Annotated[
        str | None,
        typer.Option("--objective", "-o", help="Objective family subdirectory to search"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON on stdout"),
    ] = False,
) -> None:
    """Scan the results root for newly completed experiments.

    Examples:
        # Scan the default results root
        globtim-pipeline scan

        # Scan a specific family subdirectory
        globtim-pipeline scan --objective deuflhard
    """
    state = get_context(ctx)
    registry = state.open_registry()
    orchestrator = state.orchestrator(registry, objective_family=objective)

    new_count = orchestrator.scan()

    if json_output:
        output_json({"new_experiments": new_count, "total": len(registry)})
        return
    log_success(f"Found {new_count} new experiments ({len(registry)} total)")


def analyze_experiments(
    ctx: typer.Context,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum number of experiments to analyze"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON on stdout"),
    ] = False,
) -> None:
    """Analyze pending experiments, oldest first.

    Failures are recorded per experiment and do not stop the batch.
    """
    state = get_context(ctx)
    registry = state.open_registry()
    observer = None if json_output else RichObserver(console)
    orchestrator = state.orchestrator(registry, observer=observer)

    summary = orchestrator.analyze_pending(limit or state.config.analyze_limit)

    if json_output:
        output_json(
            {"analyzed": summary.analyzed, "failed": summary.failed, "total": summary.total}
        )


def watch_experiments(
    ctx: typer.Context,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", min=0.0, help="Seconds between scans"),
    ] = None,
    max_iterations: Annotated[
        int | None,
        typer.Option("--max-iterations", min=1, help="Stop after this many scans"),
    ] = None,
) -> None:
    """Watch for new experiments and analyze them as they complete.

    Stops on Ctrl+C or SIGTERM. Every step is saved as it happens.
    """
    state = get_context(ctx)
    registry = state.open_registry()
    orchestrator = state.orchestrator(registry, observer=RichObserver(console))
    seconds = interval if interval is not None else state.config.watch_interval

    console.print()
    console.print("[bold cyan]PIPELINE WATCH MODE[/bold cyan]")
    log_separator()
    console.print(f"[dim]Scanning every {seconds} seconds[/dim]")
    console.print(f"[dim]Results root: {registry.results_root}[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    def report(result: WatchIteration) -> None:
        status = result.status
        console.print(
            f"[dim][{datetime.now():%H:%M:%S}] Pending: {status.pending} | "
            f"Analyzed: {status.analyzed} | Failed: {status.failed} | "
            f"Next scan in {seconds} s[/dim]"
        )

    stop = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: stop.set())
    try:
        completed = orchestrator.watch(
            seconds,
            max_iterations=max_iterations,
            stop_event=stop,
            on_iteration=report,
            limit=state.config.analyze_limit,
        )
    finally:
        signal.signal(signal.SIGTERM, previous)

    console.print(f"[yellow]Watch mode stopped after {completed} iterations.[/yellow]")


def retry_experiments(
    ctx: typer.Context,
    include_analyzing: Annotated[
        bool,
        typer.Option(
            "--include-analyzing",
            help="Also requeue experiments left ANALYZING by an interrupted run",
        ),
    ] = False,
) -> None:
    """Requeue failed experiments so the next analyze run retries them."""
    state = get_context(ctx)
    registry = state.open_registry()

    count = registry.requeue(include_analyzing=include_analyzing)
    if count == 0:
        log_info("Nothing to requeue")
        return

    save_registry(registry, state.paths.registry_path)
    log_success(f"Requeued {count} experiments")
