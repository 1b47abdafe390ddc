"""JSON persistence for the pipeline registry.

File layout (schema version 2.0)::

    {
      "experiments": {"<path>": <entry>, ...},
      "results_root": "...",
      "last_scan": "2025-10-09T15:34:30" | null,
      "config": {...},
      "version": "2.0"
    }

Entry status is stored as the integer ordinal of ExperimentStatus.

Loading never fails: a missing, corrupt or version-mismatched file yields
a fresh empty registry. Indices are always rebuilt from the loaded
entries, and params hashes are recomputed rather than read back.

Single-writer only: there is no file locking. Saves go through a
temporary file and ``os.replace`` so a reader never sees a half-written
document, but two processes saving the same path overwrite each other.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from globtim_pipeline.registry.models import (
    ExperimentEntry,
    ExperimentParams,
    ExperimentStatus,
    format_timestamp,
    parse_timestamp,
    to_naive_local,
)
from globtim_pipeline.registry.store import PipelineRegistry

logger = logging.getLogger(__name__)

REGISTRY_VERSION = "2.0"


class RegistryLoadError(Exception):
    """Raised when a registry document cannot be decoded."""


# =============================================================================
# Document schema
# =============================================================================


class ParamsRecord(BaseModel):
    """Stored form of ExperimentParams."""

    model_config = ConfigDict(populate_by_name=True)

    gn: int = Field(..., alias="GN", description="Grid resolution")
    deg_min: int = Field(..., description="Minimum polynomial degree")
    deg_max: int = Field(..., description="Maximum polynomial degree")
    domain: float = Field(..., description="Search domain half-width")
    seed: int | str | None = Field(None, description="Seed or 'random'")
    basis: str = Field("chebyshev", description="Polynomial basis")
    timestamp: str | None = Field(None, description="ISO or YYYYMMDD_HHMMSS timestamp")
    objective: str = Field("unknown", description="Objective family")

    def to_params(self) -> ExperimentParams:
        return ExperimentParams(
            gn=self.gn,
            deg_min=self.deg_min,
            deg_max=self.deg_max,
            domain=self.domain,
            seed=self.seed,
            basis=self.basis,
            timestamp=parse_timestamp(self.timestamp) if self.timestamp else None,
            objective=self.objective,
        )


class EntryRecord(BaseModel):
    """Stored form of ExperimentEntry."""

    path: str = Field(..., description="Experiment directory path")
    name: str = Field(..., description="Directory basename")
    discovered_at: datetime = Field(..., description="Discovery time")
    completed_at: datetime | None = Field(None, description="Completion time")
    analyzed_at: datetime | None = Field(None, description="Last successful analysis")
    status: ExperimentStatus = Field(ExperimentStatus.DISCOVERED, description="Status ordinal")
    params: ParamsRecord | None = Field(None, description="Extracted parameters")
    params_hash: str = Field("", description="Parameter-cell key (recomputed on load)")

    @field_validator("discovered_at", "completed_at", "analyzed_at")
    @classmethod
    def validate_naive(cls, v: datetime | None) -> datetime | None:
        """Stored timestamps with a UTC offset load as naive local time."""
        return None if v is None else to_naive_local(v)

    def to_entry(self, path: str) -> ExperimentEntry:
        params = self.params.to_params() if self.params is not None else None
        return ExperimentEntry(
            path=path,
            name=self.name,
            discovered_at=self.discovered_at,
            completed_at=self.completed_at,
            analyzed_at=self.analyzed_at,
            status=self.status,
            params=params,
            params_hash=params.params_hash if params is not None else "",
        )


class RegistryDocument(BaseModel):
    """Top-level registry file."""

    experiments: dict[str, EntryRecord] = Field(default_factory=dict)
    results_root: str | None = None
    last_scan: datetime | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    version: str = "1.0"

    @field_validator("last_scan")
    @classmethod
    def validate_naive(cls, v: datetime | None) -> datetime | None:
        return None if v is None else to_naive_local(v)


# =============================================================================
# Encoding
# =============================================================================


def registry_to_dict(registry: PipelineRegistry) -> dict[str, Any]:
    """Encode a registry as a JSON-compatible dict."""
    return {
        "experiments": {path: entry.to_dict() for path, entry in registry.entries.items()},
        "results_root": registry.results_root,
        "last_scan": format_timestamp(registry.last_scan),
        "config": registry.config,
        "version": REGISTRY_VERSION,
    }


def registry_from_dict(data: Any, results_root: str | Path) -> PipelineRegistry:
    """Decode a registry document.

    Args:
        data: Parsed JSON document.
        results_root: Root used when the document does not name one.

    Raises:
        RegistryLoadError: If the document is invalid or has another version.
    """
    try:
        document = RegistryDocument.model_validate(data)
    except ValidationError as e:
        raise RegistryLoadError(f"Invalid registry document: {e}") from e

    if document.version != REGISTRY_VERSION:
        raise RegistryLoadError(
            f"Registry version mismatch (found {document.version}, expected {REGISTRY_VERSION})"
        )

    entries = {path: record.to_entry(path) for path, record in document.experiments.items()}
    return PipelineRegistry(
        results_root=document.results_root or results_root,
        entries=entries,
        last_scan=document.last_scan,
        config=document.config,
    )


# =============================================================================
# File I/O
# =============================================================================


def load_registry(path: str | Path, results_root: str | Path) -> PipelineRegistry:
    """Load a registry file, or start a new registry.

    Args:
        path: Registry JSON file.
        results_root: Results root for a new registry, or for a file that
            does not record one.

    Returns:
        Loaded registry with rebuilt indices, or a fresh empty registry if
        the file is missing, unreadable, malformed or of another version.
    """
    path = Path(path)
    if not path.exists():
        return PipelineRegistry(results_root=results_root)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        registry = registry_from_dict(data, results_root)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, RegistryLoadError) as e:
        logger.warning(f"Failed to load registry {path}, starting a new one: {e}")
        return PipelineRegistry(results_root=results_root)

    logger.debug(f"Loaded {len(registry)} experiments from {path}")
    return registry


def save_registry(registry: PipelineRegistry, path: str | Path) -> None:
    """Write a registry file, replacing any previous one.

    Args:
        registry: Registry to save.
        path: Destination file; parent directories are created.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(registry_to_dict(registry), indent=2, default=str)

    tmp = path.with_name(f"{path.name}.tmp-{os.getpid()}")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
