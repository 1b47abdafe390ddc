"""
Pytest configuration and shared fixtures.

Provides helpers that build experiment result trees on disk:
- completed runs with a ``.EXPERIMENT_COMPLETE`` marker
- legacy runs with only ``results_summary.json``
- in-progress runs with neither
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from globtim_pipeline.registry import PipelineRegistry

MakeExperiment = Callable[..., Path]


def write_experiment(
    parent: Path,
    name: str,
    marker: str | None = "completed_at=2025-10-09T15:34:30\n",
    results: list[dict[str, Any]] | None = None,
    config: dict[str, Any] | None = None,
    mtime: datetime | None = None,
) -> Path:
    """Create an experiment directory.

    Args:
        parent: Directory to create the experiment in.
        name: Directory basename.
        marker: Completion marker text, or None for no marker.
        results: Contents of results_summary.json, or None for no file.
        config: Contents of experiment_config.json, or None for no file.
        mtime: Directory modification time to set.
    """
    exp_dir = parent / name
    exp_dir.mkdir(parents=True)
    if config is not None:
        (exp_dir / "experiment_config.json").write_text(json.dumps(config))
    if results is not None:
        (exp_dir / "results_summary.json").write_text(json.dumps(results))
    if marker is not None:
        (exp_dir / ".EXPERIMENT_COMPLETE").write_text(marker)
    if mtime is not None:
        stamp = mtime.timestamp()
        os.utime(exp_dir, (stamp, stamp))
    return exp_dir


@pytest.fixture
def results_root(tmp_path: Path) -> Path:
    """Empty results root directory."""
    root = tmp_path / "globtim_results"
    root.mkdir()
    return root


@pytest.fixture
def registry_file(tmp_path: Path) -> Path:
    """Registry file location (not yet created)."""
    return tmp_path / "state" / "pipeline_registry.json"


@pytest.fixture
def make_experiment(results_root: Path) -> MakeExperiment:
    """Factory creating experiment directories under the results root."""

    def _make(name: str, **kwargs: Any) -> Path:
        return write_experiment(results_root, name, **kwargs)

    return _make


@pytest.fixture
def registry(results_root: Path) -> PipelineRegistry:
    """Empty registry over the results root."""
    return PipelineRegistry(results_root=results_root)
