"""Parameter coverage over the registry.

Read-only: computes a GN x domain count matrix and finds target
parameter combinations that have no run yet.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from itertools import product
from typing import NamedTuple

from globtim_pipeline.registry.store import PipelineRegistry


class MissingParams(NamedTuple):
    """A target parameter combination with no experiment."""

    gn: int
    domain: float
    deg_min: int
    deg_max: int


@dataclass(frozen=True)
class ParameterCoverage:
    """Coverage of the GN x domain grid.

    Attributes:
        gn_values: Sorted unique GN values.
        domain_values: Sorted unique domains, rounded to 6 significant digits.
        degree_combinations: Sorted unique (deg_min, deg_max) pairs.
        matrix: ``matrix[i][j]`` = number of entries with ``gn_values[i]``
            and ``domain_values[j]``, across all degrees and seeds.
        total_experiments: Number of entries, with or without params.
        unique_param_combinations: Number of distinct parameter cells.
    """

    gn_values: tuple[int, ...]
    domain_values: tuple[float, ...]
    degree_combinations: tuple[tuple[int, int], ...]
    matrix: tuple[tuple[int, ...], ...]
    total_experiments: int
    unique_param_combinations: int

    def count(self, gn: int, domain: float) -> int:
        """Count for one grid cell, 0 if either value is absent."""
        try:
            i = self.gn_values.index(gn)
            j = self.domain_values.index(domain)
        except ValueError:
            return 0
        return self.matrix[i][j]

    @property
    def is_empty(self) -> bool:
        return not self.gn_values or not self.domain_values


def compute_coverage(registry: PipelineRegistry) -> ParameterCoverage:
    """Compute coverage from the registry entries.

    Args:
        registry: Registry to inspect.

    Returns:
        ParameterCoverage computed fresh from ``registry.entries``.
    """
    params = [e.params for e in registry.entries.values() if e.params is not None]

    gn_values = tuple(sorted({p.gn for p in params}))
    domain_values = tuple(sorted({p.rounded_domain for p in params}))
    degrees = tuple(sorted({(p.deg_min, p.deg_max) for p in params}))

    gn_index = {gn: i for i, gn in enumerate(gn_values)}
    domain_index = {d: j for j, d in enumerate(domain_values)}
    counts = [[0] * len(domain_values) for _ in gn_values]
    for p in params:
        counts[gn_index[p.gn]][domain_index[p.rounded_domain]] += 1

    return ParameterCoverage(
        gn_values=gn_values,
        domain_values=domain_values,
        degree_combinations=degrees,
        matrix=tuple(tuple(row) for row in counts),
        total_experiments=len(registry.entries),
        unique_param_combinations=len(registry.by_hash),
    )


def find_missing_params(
    registry: PipelineRegistry,
    target_gns: Iterable[int],
    target_domains: Iterable[float],
    target_degrees: Iterable[tuple[int, int]],
) -> list[MissingParams]:
    """List target combinations with no experiment in the registry.

    Checks the Cartesian product of the targets for existence (not count)
    with the exact-params hash lookup.

    Args:
        registry: Registry to inspect.
        target_gns: GN values to cover.
        target_domains: Domain values to cover.
        target_degrees: (deg_min, deg_max) ranges to cover.

    Returns:
        Missing combinations in GN, domain, degree order.
    """
    missing: list[MissingParams] = []
    for gn, domain, (deg_min, deg_max) in product(
        list(target_gns), list(target_domains), list(target_degrees)
    ):
        if not registry.get_by_exact_params(gn, deg_min, deg_max, domain):
            missing.append(MissingParams(gn, domain, deg_min, deg_max))
    return missing


def format_domain(domain: float) -> str:
    """Format a domain value for display.

    Example:
        >>> format_domain(0.1)
        '0.100'
        >>> format_domain(0.005)
        '5.0e-03'
    """
    if domain >= 0.01:
        return f"{domain:.3f}"
    return f"{domain:.1e}"
