"""Pipeline configuration.

Settings come from an optional YAML file validated by pydantic. Default
locations for the results root and registry file are derived here, from
the environment and working directory, and then passed explicitly into
the registry, scanner and orchestrator, which never read the environment
themselves.

Precedence for paths: explicit CLI option > config file > environment >
built-in default.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from globtim_pipeline.discovery.scanner import DEFAULT_OBJECTIVE_FAMILY

RESULTS_ROOT_ENV = "GLOBTIM_RESULTS_ROOT"
REGISTRY_PATH_ENV = "GLOBTIM_REGISTRY_PATH"

RESULTS_DIR_NAME = "globtim_results"
REGISTRY_FILE_NAME = "pipeline_registry.json"

# How many parent directories to search for a results directory
_RESULTS_SEARCH_DEPTH = 5


class CoverageTargets(BaseModel):
    """Default targets for missing-combination queries."""

    gn_values: list[int] = Field(default_factory=list, description="Target GN values")
    domains: list[float] = Field(default_factory=list, description="Target domains")
    degree_ranges: list[tuple[int, int]] = Field(
        default_factory=list, description="Target (deg_min, deg_max) ranges"
    )

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, v: list[float]) -> list[float]:
        """Domains are half-widths and must be positive."""
        if any(d <= 0 for d in v):
            raise ValueError(f"Domains must be positive: {v}")
        return v

    @field_validator("degree_ranges")
    @classmethod
    def validate_degree_ranges(cls, v: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Each range must satisfy deg_min <= deg_max."""
        bad = [r for r in v if r[0] > r[1]]
        if bad:
            raise ValueError(f"Degree ranges must have deg_min <= deg_max: {bad}")
        return v


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    results_root: Path | None = Field(None, description="Experiment results root")
    registry_path: Path | None = Field(None, description="Registry JSON file")
    objective_family: str = Field(
        DEFAULT_OBJECTIVE_FAMILY, description="Family subdirectory searched first"
    )
    watch_interval: float = Field(60.0, gt=0, description="Seconds between watch scans")
    analyze_limit: int | None = Field(
        None, gt=0, description="Maximum experiments analyzed per batch"
    )
    coverage: CoverageTargets = Field(default_factory=CoverageTargets)


def load_config(config_path: str | Path) -> PipelineConfig:
    """Load and validate pipeline configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Validated PipelineConfig.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is empty or invalid.
        yaml.YAMLError: If YAML parsing fails.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        raise ValueError(f"Empty configuration file: {config_path}")

    try:
        return PipelineConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e


# =============================================================================
# Default paths
# =============================================================================


def default_results_root(environ: Mapping[str, str], cwd: Path, home: Path) -> Path:
    """Default results root.

    Uses ``GLOBTIM_RESULTS_ROOT`` if set, else the first ``globtim_results``
    directory found in ``cwd`` or its parents, else ``home/globtim_results``.
    """
    if environ.get(RESULTS_ROOT_ENV):
        return Path(environ[RESULTS_ROOT_ENV])

    current = cwd
    for _ in range(_RESULTS_SEARCH_DEPTH):
        candidate = current / RESULTS_DIR_NAME
        if candidate.is_dir():
            return candidate
        current = current.parent

    return home / RESULTS_DIR_NAME


def default_registry_path(environ: Mapping[str, str], home: Path) -> Path:
    """Default registry file: ``GLOBTIM_REGISTRY_PATH`` or ``~/.globtim/...``."""
    if environ.get(REGISTRY_PATH_ENV):
        return Path(environ[REGISTRY_PATH_ENV])
    return home / ".globtim" / REGISTRY_FILE_NAME


@dataclass(frozen=True)
class ResolvedPaths:
    """Registry and results locations after applying precedence."""

    registry_path: Path
    results_root: Path


def resolve_paths(
    config: PipelineConfig,
    environ: Mapping[str, str],
    cwd: Path,
    home: Path,
    registry_path: Path | None = None,
    results_root: Path | None = None,
) -> ResolvedPaths:
    """Resolve registry and results paths.

    Args:
        config: Loaded (or default) configuration.
        environ: Environment variables.
        cwd: Working directory.
        home: Home directory.
        registry_path: Explicit override, e.g. from the command line.
        results_root: Explicit override, e.g. from the command line.
    """
    return ResolvedPaths(
        registry_path=registry_path
        or config.registry_path
        or default_registry_path(environ, home),
        results_root=results_root
        or config.results_root
        or default_results_root(environ, cwd, home),
    )
