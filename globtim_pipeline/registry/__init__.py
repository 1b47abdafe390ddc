"""Experiment registry.

Components:
    - ExperimentStatus, ExperimentParams, ExperimentEntry: value types
    - extract_params: directory-name parameter extraction
    - PipelineRegistry: indexed in-memory registry
    - load_registry / save_registry: versioned JSON persistence

Example:
    >>> from globtim_pipeline.registry import load_registry, save_registry
    >>> registry = load_registry(Path("pipeline_registry.json"), results_root="results")
    >>> registry.get_by_filter(gn=16)
    >>> save_registry(registry, Path("pipeline_registry.json"))
"""

from globtim_pipeline.registry.models import (
    ExperimentEntry,
    ExperimentParams,
    ExperimentStatus,
    compute_params_hash,
    round_domain,
)
from globtim_pipeline.registry.params import (
    OBJECTIVE_FAMILIES,
    ObjectiveFamily,
    detect_objective,
    extract_params,
)
from globtim_pipeline.registry.persistence import (
    REGISTRY_VERSION,
    load_registry,
    save_registry,
)
from globtim_pipeline.registry.store import (
    ExperimentNotFoundError,
    PipelineRegistry,
    RegistryIndices,
    UniqueParams,
    build_indices,
)

__all__ = [
    # Value types
    "ExperimentEntry",
    "ExperimentParams",
    "ExperimentStatus",
    "compute_params_hash",
    "round_domain",
    # Parameter extraction
    "OBJECTIVE_FAMILIES",
    "ObjectiveFamily",
    "detect_objective",
    "extract_params",
    # Store
    "ExperimentNotFoundError",
    "PipelineRegistry",
    "RegistryIndices",
    "UniqueParams",
    "build_indices",
    # Persistence
    "REGISTRY_VERSION",
    "load_registry",
    "save_registry",
]
