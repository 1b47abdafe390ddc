"""Registry value types.

Defines the experiment lifecycle status, the parameter record extracted
from directory names, and the registry entry itself.

The params hash identifies a "parameter cell": the combination of grid
resolution, degree range and domain size. It ignores seed, basis,
timestamp and objective, so several runs (different seeds) can share one
hash.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum
from typing import Any

# Layout used in directory names and accepted as a legacy timestamp format
NAME_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class ExperimentStatus(IntEnum):
    """Pipeline status of an experiment.

    Ordinal values are persisted in the registry file and must not change.
    Valid forward transitions: DISCOVERED -> ANALYZING -> ANALYZED | FAILED.
    """

    DISCOVERED = 0  # Found but not yet analyzed
    ANALYZING = 1  # Analysis in progress
    ANALYZED = 2  # Analysis complete
    FAILED = 3  # Analysis raised


# =============================================================================
# Hashing and rounding
# =============================================================================


def compute_params_hash(gn: int, deg_min: int, deg_max: int, domain: float) -> str:
    """Compute the canonical key of a parameter cell.

    Args:
        gn: Grid resolution.
        deg_min: Minimum polynomial degree.
        deg_max: Maximum polynomial degree.
        domain: Half-width of the search domain.

    Returns:
        Hash string, e.g. ``GN16_deg4-12_dom1.000000e-01``.

    Example:
        >>> compute_params_hash(16, 4, 12, 0.1)
        'GN16_deg4-12_dom1.000000e-01'
    """
    return f"GN{gn}_deg{deg_min}-{deg_max}_dom{domain:.6e}"


def round_domain(domain: float) -> float:
    """Round a domain value to 6 significant digits for index keys."""
    return float(f"{domain:.6g}")


def to_naive_local(value: datetime) -> datetime:
    """Convert an offset-aware datetime to naive local time.

    Registry timestamps are naive local times; naive input is returned
    unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO timestamp or a ``YYYYMMDD_HHMMSS`` stamp.

    ISO timestamps with a UTC offset are converted to naive local time.

    Returns:
        Parsed datetime, or None if neither layout matches.
    """
    try:
        return to_naive_local(datetime.fromisoformat(value))
    except ValueError:
        pass
    try:
        return datetime.strptime(value, NAME_TIMESTAMP_FORMAT)
    except ValueError:
        return None


def format_timestamp(value: datetime | None) -> str | None:
    """Serialize an optional datetime as ISO text."""
    return None if value is None else value.isoformat()


# =============================================================================
# Parameter record
# =============================================================================


@dataclass(frozen=True)
class ExperimentParams:
    """Parameters extracted from an experiment directory name.

    Attributes:
        gn: Grid resolution (collocation points per dimension).
        deg_min: Minimum polynomial degree.
        deg_max: Maximum polynomial degree.
        domain: Half-width of the search domain (> 0).
        seed: Random seed, the literal "random", or None if unspecified.
        basis: Polynomial basis.
        timestamp: Experiment timestamp from the name, if present.
        objective: Objective family, e.g. "lotka_volterra_4d".
    """

    gn: int
    deg_min: int
    deg_max: int
    domain: float
    seed: int | str | None = None
    basis: str = "chebyshev"
    timestamp: datetime | None = None
    objective: str = "unknown"

    @property
    def params_hash(self) -> str:
        """Canonical parameter-cell key for these params."""
        return compute_params_hash(self.gn, self.deg_min, self.deg_max, self.domain)

    @property
    def rounded_domain(self) -> float:
        """Domain rounded for index and coverage keys."""
        return round_domain(self.domain)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the registry file representation."""
        return {
            "GN": self.gn,
            "deg_min": self.deg_min,
            "deg_max": self.deg_max,
            "domain": self.domain,
            "seed": self.seed,
            "basis": self.basis,
            "timestamp": format_timestamp(self.timestamp),
            "objective": self.objective,
        }

    def __str__(self) -> str:
        seed = "" if self.seed is None else f", seed={self.seed}"
        stamp = "" if self.timestamp is None else f", {self.timestamp:%Y-%m-%d}"
        objective = "" if self.objective == "unknown" else f" [{self.objective}]"
        return (
            f"ExperimentParams(GN={self.gn}, deg={self.deg_min}-{self.deg_max}, "
            f"domain={self.domain}{seed}{stamp}){objective}"
        )


# =============================================================================
# Registry entry
# =============================================================================


@dataclass(frozen=True)
class ExperimentEntry:
    """Registry entry for a single experiment directory.

    Immutable. Status changes produce a new entry via ``with_status``.

    Attributes:
        path: Normalized path of the experiment directory (primary key).
        name: Directory basename.
        discovered_at: When the scanner first saw the directory.
        completed_at: When the experiment finished, if known.
        analyzed_at: When analysis last succeeded, if ever.
        status: Current pipeline status.
        params: Extracted parameters, or None if the name did not parse.
        params_hash: Parameter-cell key, "" when params is None.
    """

    path: str
    name: str
    discovered_at: datetime
    completed_at: datetime | None = None
    analyzed_at: datetime | None = None
    status: ExperimentStatus = ExperimentStatus.DISCOVERED
    params: ExperimentParams | None = None
    params_hash: str = ""

    @property
    def queue_time(self) -> datetime:
        """Timestamp used to order the pending queue (oldest first)."""
        return self.completed_at if self.completed_at is not None else self.discovered_at

    def with_status(
        self,
        status: ExperimentStatus,
        analyzed_at: datetime | None = None,
    ) -> ExperimentEntry:
        """Return a copy with a new status.

        ``analyzed_at`` is set (defaulting to now) only when moving into
        ANALYZED; every other transition keeps the previous value.
        """
        if status is ExperimentStatus.ANALYZED:
            stamp = analyzed_at if analyzed_at is not None else datetime.now()
        else:
            stamp = self.analyzed_at
        return replace(self, status=status, analyzed_at=stamp)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the registry file representation."""
        return {
            "path": self.path,
            "name": self.name,
            "discovered_at": format_timestamp(self.discovered_at),
            "completed_at": format_timestamp(self.completed_at),
            "analyzed_at": format_timestamp(self.analyzed_at),
            "status": int(self.status),
            "params": None if self.params is None else self.params.to_dict(),
            "params_hash": self.params_hash,
        }
