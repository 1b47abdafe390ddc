"""In-memory experiment registry with parameter indices.

The registry maps experiment paths to entries and keeps three derived
indices (by params hash, by GN, by rounded domain). The indices always
equal ``build_indices(entries)``: every mutation updates them
incrementally, and loading rebuilds them from scratch.

The registry does not save itself. Callers persist it with
``save_registry`` at whatever checkpoints they need.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, NamedTuple

from globtim_pipeline.registry.models import (
    ExperimentEntry,
    ExperimentParams,
    ExperimentStatus,
    compute_params_hash,
)
from globtim_pipeline.registry.params import extract_params

# Relative tolerance for domain equality in filtered queries
DOMAIN_RTOL = 1e-6


class ExperimentNotFoundError(KeyError):
    """Raised when an operation names a path that is not in the registry."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Experiment not found in registry: {path}")

    def __str__(self) -> str:
        return str(self.args[0])


class UniqueParams(NamedTuple):
    """One parameter cell present in the registry, with its run count."""

    gn: int
    deg_min: int
    deg_max: int
    domain: float
    count: int


# =============================================================================
# Indices
# =============================================================================


@dataclass
class RegistryIndices:
    """Derived lookup tables over entries that have params."""

    by_hash: dict[str, set[str]] = field(default_factory=dict)
    by_gn: dict[int, set[str]] = field(default_factory=dict)
    by_domain: dict[float, set[str]] = field(default_factory=dict)

    def insert(self, path: str, entry: ExperimentEntry) -> None:
        """Add an entry's memberships. Entries without params are skipped."""
        if entry.params is None:
            return
        if entry.params_hash:
            self.by_hash.setdefault(entry.params_hash, set()).add(path)
        self.by_gn.setdefault(entry.params.gn, set()).add(path)
        self.by_domain.setdefault(entry.params.rounded_domain, set()).add(path)

    def discard(self, path: str, entry: ExperimentEntry) -> None:
        """Remove an entry's memberships, dropping keys that become empty."""
        if entry.params is None:
            return
        _discard(self.by_hash, entry.params_hash, path)
        _discard(self.by_gn, entry.params.gn, path)
        _discard(self.by_domain, entry.params.rounded_domain, path)


def _discard(index: dict[Any, set[str]], key: Any, path: str) -> None:
    members = index.get(key)
    if members is None:
        return
    members.discard(path)
    if not members:
        del index[key]


def build_indices(entries: Mapping[str, ExperimentEntry]) -> RegistryIndices:
    """Build all indices from entries alone.

    Args:
        entries: Path to entry mapping.

    Returns:
        Fresh RegistryIndices.
    """
    indices = RegistryIndices()
    for path, entry in entries.items():
        indices.insert(path, entry)
    return indices


# =============================================================================
# Registry
# =============================================================================


class PipelineRegistry:
    """Indexed collection of experiment entries.

    Example:
        >>> registry = PipelineRegistry(results_root="/data/globtim_results")
        >>> entry = registry.add_experiment(
        ...     "/data/globtim_results/lv4d_GN8_deg4-12_dom0.2_20251009_153430",
        ...     "lv4d_GN8_deg4-12_dom0.2_20251009_153430",
        ... )
        >>> entry.params_hash
        'GN8_deg4-12_dom2.000000e-01'
        >>> len(registry.get_by_exact_params(8, 4, 12, 0.2))
        1
    """

    def __init__(
        self,
        results_root: str | Path,
        entries: Mapping[str, ExperimentEntry] | None = None,
        last_scan: datetime | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            results_root: Root directory that scans search.
            entries: Initial entries keyed by path; indices are rebuilt.
            last_scan: Time of the last completed scan.
            config: Free-form configuration persisted with the registry.
        """
        self.results_root = str(results_root)
        self.last_scan = last_scan
        self.config: dict[str, Any] = dict(config or {})
        self._entries: dict[str, ExperimentEntry] = dict(entries or {})
        self._indices = build_indices(self._entries)

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def entries(self) -> Mapping[str, ExperimentEntry]:
        """Entries keyed by path. Do not mutate."""
        return self._entries

    @property
    def by_hash(self) -> Mapping[str, set[str]]:
        return self._indices.by_hash

    @property
    def by_gn(self) -> Mapping[int, set[str]]:
        return self._indices.by_gn

    @property
    def by_domain(self) -> Mapping[float, set[str]]:
        return self._indices.by_domain

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._entries

    def has_experiment(self, path: str | Path) -> bool:
        """Check whether a path is already registered."""
        return str(path) in self._entries

    def get(self, path: str | Path) -> ExperimentEntry:
        """Get the entry for a path.

        Raises:
            ExperimentNotFoundError: If the path is not registered.
        """
        key = str(path)
        if key not in self._entries:
            raise ExperimentNotFoundError(key)
        return self._entries[key]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_experiment(
        self,
        path: str | Path,
        name: str,
        completed_at: datetime | None = None,
        params: ExperimentParams | None = None,
        discovered_at: datetime | None = None,
    ) -> ExperimentEntry:
        """Add or replace an experiment entry.

        When ``params`` is not given it is extracted from ``name``. An
        existing entry at the same path is replaced and re-indexed.

        Args:
            path: Experiment directory path (registry key).
            name: Directory basename.
            completed_at: Completion time, if known.
            params: Explicit params, overriding name extraction.
            discovered_at: Discovery time, defaults to now.

        Returns:
            The new entry, with status DISCOVERED.
        """
        key = str(path)
        actual_params = params if params is not None else extract_params(name)
        entry = ExperimentEntry(
            path=key,
            name=name,
            discovered_at=discovered_at if discovered_at is not None else datetime.now(),
            completed_at=completed_at,
            analyzed_at=None,
            status=ExperimentStatus.DISCOVERED,
            params=actual_params,
            params_hash=actual_params.params_hash if actual_params is not None else "",
        )

        previous = self._entries.get(key)
        if previous is not None:
            self._indices.discard(key, previous)
        self._entries[key] = entry
        self._indices.insert(key, entry)
        return entry

    def remove_experiment(self, path: str | Path) -> ExperimentEntry:
        """Remove an entry and its index memberships.

        Returns:
            The removed entry.

        Raises:
            ExperimentNotFoundError: If the path is not registered.
        """
        entry = self.get(path)
        self._indices.discard(entry.path, entry)
        del self._entries[entry.path]
        return entry

    def update_status(
        self,
        path: str | Path,
        status: ExperimentStatus,
        analyzed_at: datetime | None = None,
    ) -> ExperimentEntry:
        """Set the status of a registered experiment.

        Indices are keyed on params only, so they do not change.

        Args:
            path: Registered experiment path.
            status: New status.
            analyzed_at: Analysis time recorded when moving to ANALYZED,
                defaults to now.

        Returns:
            The updated entry.

        Raises:
            ExperimentNotFoundError: If the path is not registered. The
                registry is left unchanged.
        """
        updated = self.get(path).with_status(status, analyzed_at)
        self._entries[updated.path] = updated
        return updated

    def requeue(
        self,
        paths: Iterable[str | Path] | None = None,
        include_analyzing: bool = False,
    ) -> int:
        """Move failed entries back to DISCOVERED so they are retried.

        Args:
            paths: Restrict to these paths; defaults to every entry.
            include_analyzing: Also requeue entries left ANALYZING, e.g.
                by a crash during analysis.

        Returns:
            Number of entries requeued.

        Raises:
            ExperimentNotFoundError: If an explicit path is not registered.
        """
        eligible = {ExperimentStatus.FAILED}
        if include_analyzing:
            eligible.add(ExperimentStatus.ANALYZING)

        candidates = (
            [self.get(p) for p in paths] if paths is not None else list(self._entries.values())
        )
        count = 0
        for entry in candidates:
            if entry.status in eligible:
                self.update_status(entry.path, ExperimentStatus.DISCOVERED)
                count += 1
        return count

    def rebuild_indices(self) -> None:
        """Discard and rebuild all indices from entries."""
        self._indices = build_indices(self._entries)

    # -------------------------------------------------------------------------
    # Parameter queries
    # -------------------------------------------------------------------------

    def get_by_exact_params(
        self, gn: int, deg_min: int, deg_max: int, domain: float
    ) -> list[ExperimentEntry]:
        """Get all entries in one parameter cell (hash index lookup).

        Returns:
            Matching entries sorted by path.
        """
        key = compute_params_hash(gn, deg_min, deg_max, domain)
        return [self._entries[p] for p in sorted(self._indices.by_hash.get(key, ()))]

    def has_experiment_with_params(
        self, gn: int, deg_min: int, deg_max: int, domain: float
    ) -> bool:
        """Check whether any run exists for a parameter cell."""
        key = compute_params_hash(gn, deg_min, deg_max, domain)
        return bool(self._indices.by_hash.get(key))

    def get_by_filter(
        self,
        gn: int | None = None,
        domain: float | None = None,
        domain_range: tuple[float, float] | None = None,
        deg_min: int | None = None,
        deg_max: int | None = None,
    ) -> list[ExperimentEntry]:
        """Query entries matching every given criterion.

        Entries without params never match. The GN index narrows the
        candidates when ``gn`` is given; domain equality uses a relative
        tolerance.

        Args:
            gn: Exact grid resolution.
            domain: Domain value, compared with relative tolerance.
            domain_range: Inclusive (low, high) domain bounds.
            deg_min: Exact minimum degree.
            deg_max: Exact maximum degree.

        Returns:
            Matching entries sorted by path.
        """
        if gn is not None:
            paths: Iterable[str] = self._indices.by_gn.get(gn, ())
        else:
            paths = self._entries.keys()

        results: list[ExperimentEntry] = []
        for path in paths:
            entry = self._entries[path]
            p = entry.params
            if p is None:
                continue
            if gn is not None and p.gn != gn:
                continue
            if domain is not None and not math.isclose(p.domain, domain, rel_tol=DOMAIN_RTOL):
                continue
            if domain_range is not None and not (domain_range[0] <= p.domain <= domain_range[1]):
                continue
            if deg_min is not None and p.deg_min != deg_min:
                continue
            if deg_max is not None and p.deg_max != deg_max:
                continue
            results.append(entry)

        results.sort(key=lambda e: e.path)
        return results

    def unique_params(self) -> list[UniqueParams]:
        """List parameter cells with run counts, sorted by GN, domain, degrees."""
        rows: list[UniqueParams] = []
        for paths in self._indices.by_hash.values():
            # All members share a cell; any one describes it
            p = self._entries[min(paths)].params
            if p is None:
                continue
            rows.append(UniqueParams(p.gn, p.deg_min, p.deg_max, p.domain, len(paths)))
        rows.sort(key=lambda r: (r.gn, r.domain, r.deg_min, r.deg_max))
        return rows

    # -------------------------------------------------------------------------
    # Status queries
    # -------------------------------------------------------------------------

    def list_by_status(self, status: ExperimentStatus) -> list[ExperimentEntry]:
        """Get entries with a given status, sorted by path."""
        return sorted(
            (e for e in self._entries.values() if e.status is status),
            key=lambda e: e.path,
        )

    def list_pending(self) -> list[ExperimentEntry]:
        """Get DISCOVERED entries, oldest first (completion time, else discovery)."""
        pending = [e for e in self._entries.values() if e.status is ExperimentStatus.DISCOVERED]
        pending.sort(key=lambda e: (e.queue_time, e.path))
        return pending

    def list_analyzed(self) -> list[ExperimentEntry]:
        """Get ANALYZED entries."""
        return self.list_by_status(ExperimentStatus.ANALYZED)

    def status_counts(self) -> dict[ExperimentStatus, int]:
        """Count entries per status (every status present, possibly 0)."""
        counts = Counter(e.status for e in self._entries.values())
        return {status: counts.get(status, 0) for status in ExperimentStatus}

    def summary(self) -> str:
        """One-line description of the registry contents."""
        counts = self.status_counts()
        order = (
            ExperimentStatus.ANALYZED,
            ExperimentStatus.DISCOVERED,
            ExperimentStatus.ANALYZING,
            ExperimentStatus.FAILED,
        )
        parts = [f"{counts[s]} {s.name.lower()}" for s in order if counts[s]]
        text = f"PipelineRegistry({len(self._entries)} experiments"
        if parts:
            text += f" [{', '.join(parts)}]"
        text += (
            f", {len(self.by_hash)} param combinations, {len(self.by_gn)} GN values,"
            f" {len(self.by_domain)} domains"
        )
        if self.last_scan is not None:
            text += f", last scan: {self.last_scan:%Y-%m-%d %H:%M}"
        return text + ")"

    def __str__(self) -> str:
        return self.summary()
