"""Shared state for pipeline CLI commands.

The app callback resolves configuration and paths once and stores a
PipelineContext on ``ctx.obj``; commands open the registry through it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from globtim_pipeline.config import PipelineConfig, ResolvedPaths
from globtim_pipeline.orchestrator import (
    OrchestratorObserver,
    PipelineOrchestrator,
)
from globtim_pipeline.registry import PipelineRegistry, load_registry


@dataclass
class PipelineContext:
    """Resolved configuration for one CLI invocation.

    Attributes:
        config: Loaded or default configuration.
        paths: Registry and results locations.
        results_root_override: Results root given explicitly on the
            command line; replaces the one stored in the registry file.
    """

    config: PipelineConfig
    paths: ResolvedPaths
    results_root_override: Path | None = None

    def open_registry(self) -> PipelineRegistry:
        """Load the registry (or start a new one)."""
        registry = load_registry(self.paths.registry_path, self.paths.results_root)
        if self.results_root_override is not None:
            registry.results_root = os.fspath(self.results_root_override)
        return registry

    def orchestrator(
        self,
        registry: PipelineRegistry,
        observer: OrchestratorObserver | None = None,
        objective_family: str | None = None,
    ) -> PipelineOrchestrator:
        """Orchestrator that saves to the resolved registry path."""
        return PipelineOrchestrator(
            registry,
            self.paths.registry_path,
            objective_family=objective_family or self.config.objective_family,
            observer=observer,
        )


def get_context(ctx: typer.Context) -> PipelineContext:
    """Fetch the PipelineContext stored by the app callback."""
    state = ctx.obj
    if not isinstance(state, PipelineContext):
        raise typer.BadParameter("Pipeline context not initialized")
    return state
