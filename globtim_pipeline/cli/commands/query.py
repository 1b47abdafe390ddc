"""Read-only CLI commands: status, query, coverage, missing."""

from __future__ import annotations

import dataclasses
from typing import Annotated

import typer

from globtim_pipeline.cli.context import get_context
from globtim_pipeline.cli.display import (
    display_coverage,
    display_entries,
    display_missing,
    display_status,
)
from globtim_pipeline.cli.output import console, log_error, output_json
from globtim_pipeline.coverage import compute_coverage, find_missing_params
from globtim_pipeline.orchestrator import pipeline_status


def parse_degree_range(value: str) -> tuple[int, int]:
    """Parse a ``MIN-MAX`` degree range.

    Example:
        >>> parse_degree_range("4-12")
        (4, 12)
    """
    lo, sep, hi = value.partition("-")
    try:
        if not sep:
            raise ValueError(value)
        deg_min, deg_max = int(lo), int(hi)
    except ValueError:
        raise typer.BadParameter(f"Expected MIN-MAX, got '{value}'") from None
    if deg_min > deg_max:
        raise typer.BadParameter(f"deg_min must not exceed deg_max: '{value}'")
    return deg_min, deg_max


def show_status(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print status as JSON on stdout"),
    ] = False,
) -> None:
    """Show pipeline status counts."""
    state = get_context(ctx)
    status = pipeline_status(state.open_registry())

    if json_output:
        output_json(dataclasses.asdict(status))
        return
    display_status(console, status)


def query_experiments(
    ctx: typer.Context,
    gn: Annotated[int | None, typer.Option("--gn", help="Grid resolution")] = None,
    domain: Annotated[float | None, typer.Option("--domain", help="Domain half-width")] = None,
    deg_min: Annotated[int | None, typer.Option("--deg-min", help="Minimum degree")] = None,
    deg_max: Annotated[int | None, typer.Option("--deg-max", help="Maximum degree")] = None,
    domain_min: Annotated[
        float | None, typer.Option("--domain-min", help="Lower domain bound (inclusive)")
    ] = None,
    domain_max: Annotated[
        float | None, typer.Option("--domain-max", help="Upper domain bound (inclusive)")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Rows to display")] = 20,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print matching entries as JSON on stdout"),
    ] = False,
) -> None:
    """Query experiments by parameters.

    Examples:
        # All GN=16 runs
        globtim-pipeline query --gn 16

        # Domains between 0.05 and 0.2 with degrees 4-12
        globtim-pipeline query --domain-min 0.05 --domain-max 0.2 --deg-min 4 --deg-max 12
    """
    state = get_context(ctx)

    domain_range = None
    if domain_min is not None or domain_max is not None:
        domain_range = (
            domain_min if domain_min is not None else 0.0,
            domain_max if domain_max is not None else float("inf"),
        )

    entries = state.open_registry().get_by_filter(
        gn=gn,
        domain=domain,
        domain_range=domain_range,
        deg_min=deg_min,
        deg_max=deg_max,
    )

    if json_output:
        output_json([e.to_dict() for e in entries])
        return
    display_entries(console, entries, limit=limit)


def show_coverage(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print coverage as JSON on stdout"),
    ] = False,
) -> None:
    """Show the GN x domain parameter coverage matrix."""
    state = get_context(ctx)
    coverage = compute_coverage(state.open_registry())

    if json_output:
        output_json(dataclasses.asdict(coverage))
        return
    display_coverage(console, coverage)


def show_missing(
    ctx: typer.Context,
    gn: Annotated[
        list[int] | None, typer.Option("--gn", help="Target GN value (repeatable)")
    ] = None,
    domain: Annotated[
        list[float] | None, typer.Option("--domain", help="Target domain (repeatable)")
    ] = None,
    degrees: Annotated[
        list[str] | None,
        typer.Option("--degrees", help="Target degree range MIN-MAX (repeatable)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print missing combinations as JSON on stdout"),
    ] = False,
) -> None:
    """List target parameter combinations that have no experiment yet.

    Targets not given on the command line come from the ``coverage``
    block of the configuration file.

    Examples:
        globtim-pipeline missing --gn 8 --gn 16 --domain 0.1 --degrees 4-12
    """
    state = get_context(ctx)
    targets = state.config.coverage

    target_gns = gn or targets.gn_values
    target_domains = domain or targets.domains
    target_degrees = [parse_degree_range(d) for d in degrees] if degrees else targets.degree_ranges

    if not (target_gns and target_domains and target_degrees):
        log_error("GN values, domains and degree ranges are all required")
        raise typer.Exit(1)

    missing = find_missing_params(
        state.open_registry(), target_gns, target_domains, target_degrees
    )

    if json_output:
        output_json([m._asdict() for m in missing])
        return
    display_missing(console, missing)
