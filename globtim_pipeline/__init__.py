"""Globtim Pipeline - registry, discovery and analysis orchestration for experiment runs.

Example:
    >>> from globtim_pipeline import PipelineOrchestrator, load_registry
    >>> registry = load_registry("pipeline_registry.json", results_root="globtim_results")
    >>> PipelineOrchestrator(registry, "pipeline_registry.json").scan()
"""

__version__ = "0.1.0"

from globtim_pipeline.coverage import (
    MissingParams,
    ParameterCoverage,
    compute_coverage,
    find_missing_params,
)
from globtim_pipeline.discovery import (
    discover_experiment_kind,
    is_experiment_complete,
    scan_for_experiments,
)
from globtim_pipeline.orchestrator import (
    AnalysisSummary,
    PipelineOrchestrator,
    PipelineStatus,
    pipeline_status,
)
from globtim_pipeline.registry import (
    ExperimentEntry,
    ExperimentNotFoundError,
    ExperimentParams,
    ExperimentStatus,
    PipelineRegistry,
    extract_params,
    load_registry,
    save_registry,
)

__all__ = [
    "__version__",
    # Registry
    "ExperimentEntry",
    "ExperimentNotFoundError",
    "ExperimentParams",
    "ExperimentStatus",
    "PipelineRegistry",
    "extract_params",
    "load_registry",
    "save_registry",
    # Discovery
    "discover_experiment_kind",
    "is_experiment_complete",
    "scan_for_experiments",
    # Coverage
    "MissingParams",
    "ParameterCoverage",
    "compute_coverage",
    "find_missing_params",
    # Orchestration
    "AnalysisSummary",
    "PipelineOrchestrator",
    "PipelineStatus",
    "pipeline_status",
]
