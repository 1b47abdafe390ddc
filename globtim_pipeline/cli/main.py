"""Globtim Pipeline CLI - Main entry point."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Annotated

import typer
import yaml

from globtim_pipeline import __version__
from globtim_pipeline.cli.context import PipelineContext
from globtim_pipeline.cli.output import log_error
from globtim_pipeline.config import PipelineConfig, load_config, resolve_paths

app = typer.Typer(
    name="globtim-pipeline",
    help="Globtim Pipeline - Track, analyze and query completed experiment runs",
    add_completion=True,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from globtim_pipeline.cli.output import console
        console.print(f"[bold]Globtim Pipeline[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    registry: Annotated[
        Path | None,
        typer.Option("--registry", "-r", help="Registry JSON file"),
    ] = None,
    results_root: Annotated[
        Path | None,
        typer.Option("--results-root", help="Experiment results root directory"),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML configuration file"),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
    ] = "WARNING",
) -> None:
    """Globtim Pipeline CLI - Registry-backed experiment tracking."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        log_error(f"Unknown log level: {log_level}")
        raise typer.Exit(1)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        pipeline_config = load_config(config) if config is not None else PipelineConfig()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        log_error(f"Failed to load configuration: {e}")
        raise typer.Exit(1) from e

    paths = resolve_paths(
        pipeline_config,
        os.environ,
        Path.cwd(),
        Path.home(),
        registry_path=registry,
        results_root=results_root,
    )
    ctx.obj = PipelineContext(
        config=pipeline_config,
        paths=paths,
        results_root_override=results_root or pipeline_config.results_root,
    )


# Import commands after app is defined to avoid circular imports
from globtim_pipeline.cli.commands.pipeline import (  # noqa: E402
    analyze_experiments,
    retry_experiments,
    scan_experiments,
    watch_experiments,
)
from globtim_pipeline.cli.commands.query import (  # noqa: E402
    query_experiments,
    show_coverage,
    show_missing,
    show_status,
)

app.command(name="scan", help="Scan for newly completed experiments")(scan_experiments)
app.command(name="analyze", help="Analyze pending experiments")(analyze_experiments)
app.command(name="watch", help="Continuously scan and analyze new experiments")(watch_experiments)
app.command(name="retry", help="Requeue failed experiments")(retry_experiments)
app.command(name="status", help="Show pipeline status")(show_status)
app.command(name="query", help="Query experiments by parameters")(query_experiments)
app.command(name="coverage", help="Show parameter coverage matrix")(show_coverage)
app.command(name="missing", help="List uncovered target parameter combinations")(show_missing)


if __name__ == "__main__":
    app()
