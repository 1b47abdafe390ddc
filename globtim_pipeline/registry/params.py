"""Parameter extraction from experiment directory names.

Directory names follow one grammar per objective family, e.g.::

    lv4d_GN16_deg4-12_dom1.000000e-01_seed42_20251009_153430

Families are rows of an ordered table, tried in order.
Extraction is pure and total: it never raises, and returns None when no
family pattern yields a fully parseable match.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from globtim_pipeline.registry.models import NAME_TIMESTAMP_FORMAT, ExperimentParams

logger = logging.getLogger(__name__)

AUTO_OBJECTIVE = "auto"
UNKNOWN_OBJECTIVE = "unknown"

FieldMapper = Callable[[re.Match[str], str], ExperimentParams | None]


def _family_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(
        prefix
        + r"_GN(?P<gn>\d+)_deg(?P<deg_min>\d+)-(?P<deg_max>\d+)"
        r"_(?:dom|domain)(?P<domain>[\d.e+-]+)"
        r"(?:_seed(?P<seed>\d+|random))?"
        r"_(?P<timestamp>\d{8}_\d{6})"
    )


def map_standard_fields(match: re.Match[str], objective: str) -> ExperimentParams | None:
    """Build params from a match of the standard family grammar.

    Any capture that fails to convert rejects the whole match.

    Args:
        match: Match object with gn, deg_min, deg_max, domain, seed and
            timestamp groups.
        objective: Objective family to record.

    Returns:
        ExperimentParams, or None if a capture does not convert.
    """
    try:
        gn = int(match.group("gn"))
        deg_min = int(match.group("deg_min"))
        deg_max = int(match.group("deg_max"))
        domain = float(match.group("domain"))
        timestamp = datetime.strptime(match.group("timestamp"), NAME_TIMESTAMP_FORMAT)
    except ValueError:
        return None
    if not math.isfinite(domain) or domain <= 0:
        return None

    seed_text = match.group("seed")
    seed: int | str | None
    if seed_text is None:
        seed = None
    elif seed_text == "random":
        seed = "random"
    else:
        seed = int(seed_text)

    return ExperimentParams(
        gn=gn,
        deg_min=deg_min,
        deg_max=deg_max,
        domain=domain,
        seed=seed,
        timestamp=timestamp,
        objective=objective,
    )


@dataclass(frozen=True)
class ObjectiveFamily:
    """One row of the family table.

    Attributes:
        name: Objective family identifier.
        prefixes: Name prefixes that identify the family.
        pattern: Directory-name pattern for the family.
        field_mapper: Converts a match into ExperimentParams.
    """

    name: str
    prefixes: tuple[str, ...]
    pattern: re.Pattern[str]
    field_mapper: FieldMapper = map_standard_fields

    def parse(self, name: str, objective: str | None = None) -> ExperimentParams | None:
        """Parse ``name`` with this family's pattern.

        Args:
            name: Directory basename.
            objective: Objective to record, defaults to this family's name.
        """
        match = self.pattern.search(name)
        if match is None:
            return None
        return self.field_mapper(match, objective or self.name)


# Evaluation order for names whose family cannot be determined up front
OBJECTIVE_FAMILIES: tuple[ObjectiveFamily, ...] = (
    ObjectiveFamily(
        name="lotka_volterra_4d",
        prefixes=("lv4d_",),
        pattern=_family_pattern("lv4d"),
    ),
    ObjectiveFamily(
        name="deuflhard",
        prefixes=("deuflhard_",),
        pattern=_family_pattern("deuflhard"),
    ),
    ObjectiveFamily(
        name="fitzhugh_nagumo",
        prefixes=("fhn_", "fitzhugh_"),
        pattern=_family_pattern("(?:fhn|fitzhugh)"),
    ),
)

_FAMILIES_BY_NAME = {family.name: family for family in OBJECTIVE_FAMILIES}


def get_family(name: str) -> ObjectiveFamily | None:
    """Look up a family by objective name."""
    return _FAMILIES_BY_NAME.get(name)


def detect_objective(name: str) -> str:
    """Detect the objective family from a directory name prefix.

    Example:
        >>> detect_objective("lv4d_GN8_deg4-12_dom0.1_20251009_153430")
        'lotka_volterra_4d'
        >>> detect_objective("something_else")
        'unknown'
    """
    for family in OBJECTIVE_FAMILIES:
        if name.startswith(family.prefixes):
            return family.name
    return UNKNOWN_OBJECTIVE


def extract_params(name: str, objective: str = AUTO_OBJECTIVE) -> ExperimentParams | None:
    """Extract experiment parameters from a directory name.

    When the objective is known (given or detected from the prefix) only
    that family's pattern is used. Otherwise every family is tried in
    table order until one matches completely, and the recorded objective
    is the unresolved one: "unknown" for an unrecognized prefix, or the
    explicit objective as given.

    Args:
        name: Directory basename to parse.
        objective: Objective family, or "auto" to detect it from the name.

    Returns:
        ExperimentParams if a pattern matched, None otherwise.

    Example:
        >>> p = extract_params("lv4d_GN16_deg4-12_dom1.000000e-01_seed42_20251009_153430")
        >>> (p.gn, p.deg_min, p.deg_max, p.seed, p.objective)
        (16, 4, 12, 42, 'lotka_volterra_4d')
        >>> extract_params("not_a_valid_name") is None
        True
    """
    resolved = detect_objective(name) if objective == AUTO_OBJECTIVE else objective

    family = get_family(resolved)
    if family is not None:
        return family.parse(name)

    for candidate in OBJECTIVE_FAMILIES:
        params = candidate.parse(name, resolved)
        if params is not None:
            return params

    logger.debug(f"No parameter pattern matched directory name: {name}")
    return None
