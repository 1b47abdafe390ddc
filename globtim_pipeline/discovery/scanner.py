"""Discovery of completed experiments under a results root.

Scanning is idempotent by path: a directory already in the registry is
never re-added or overwritten, whatever happened to it on disk since.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from globtim_pipeline.discovery.completion import (
    EXPERIMENT_CONFIG,
    directory_mtime,
    is_experiment_complete,
    parse_completion_metadata,
)
from globtim_pipeline.discovery.metadata import metadata_timestamp
from globtim_pipeline.registry.store import PipelineRegistry

logger = logging.getLogger(__name__)

DEFAULT_OBJECTIVE_FAMILY = "lotka_volterra_4d"

# Coarse routing tags used to pick an analysis collaborator
KIND_LV4D = "lv4d"
KIND_DEUFLHARD = "deuflhard"
KIND_FHN = "fhn"
KIND_UNKNOWN = "unknown"


def normalize_path(path: str | Path) -> str:
    """Absolute, normalized form of a path used as registry key."""
    return os.path.abspath(os.fspath(path))


def find_completed_experiments(
    results_root: str | Path,
    objective_family: str = DEFAULT_OBJECTIVE_FAMILY,
) -> list[Path]:
    """Find completed experiment directories.

    Searches ``results_root/objective_family`` if it exists, otherwise
    ``results_root`` itself. Only immediate subdirectories are considered.

    Args:
        results_root: Root results directory.
        objective_family: Family subdirectory to search first.

    Returns:
        Normalized directory paths, newest modification time first.
    """
    results_root = Path(results_root)
    if not results_root.is_dir():
        logger.warning(f"Results root not found: {results_root}")
        return []

    search_dir = results_root / objective_family
    if not search_dir.is_dir():
        search_dir = results_root

    try:
        children = list(search_dir.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list {search_dir}: {e}")
        return []

    completed: list[tuple[float, Path]] = []
    for child in children:
        if not child.is_dir():
            continue
        if not is_experiment_complete(child):
            logger.debug(f"Skipping incomplete experiment: {child.name}")
            continue
        mtime = directory_mtime(child)
        completed.append((mtime.timestamp() if mtime else 0.0, Path(normalize_path(child))))

    completed.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in completed]


def scan_for_experiments(
    registry: PipelineRegistry,
    objective_family: str = DEFAULT_OBJECTIVE_FAMILY,
) -> int:
    """Add newly completed experiments to the registry.

    Each new directory becomes a DISCOVERED entry. Its completion time is
    the marker's ``completed_at`` when that parses as a timestamp, else
    the directory modification time; params come from the basename. Sets
    ``registry.last_scan``.

    Args:
        registry: Registry to update in place (not saved).
        objective_family: Family subdirectory to search first.

    Returns:
        Number of entries added.
    """
    new_count = 0
    for experiment_dir in find_completed_experiments(registry.results_root, objective_family):
        path = str(experiment_dir)
        if registry.has_experiment(path):
            continue

        completed_at = metadata_timestamp(parse_completion_metadata(experiment_dir))
        if completed_at is None:
            completed_at = directory_mtime(experiment_dir)

        entry = registry.add_experiment(path, experiment_dir.name, completed_at=completed_at)
        if entry.params is None:
            logger.debug(f"No parameters extracted from {entry.name}")
        new_count += 1

    registry.last_scan = datetime.now()
    if new_count:
        logger.info(f"Discovered {new_count} new experiments under {registry.results_root}")
    return new_count


def discover_experiment_kind(experiment_dir: str | Path) -> str:
    """Detect the routing kind of an experiment.

    Checks the directory name first, then the ``objective_name`` field of
    the experiment config.

    Returns:
        One of "lv4d", "deuflhard", "fhn" or "unknown".
    """
    experiment_dir = Path(experiment_dir)
    name = experiment_dir.name.lower()

    if name.startswith("lv4d") or "lotka_volterra_4d" in name:
        return KIND_LV4D
    if "deuflhard" in name:
        return KIND_DEUFLHARD
    if "fhn" in name or "fitzhugh" in name:
        return KIND_FHN

    config_path = experiment_dir / EXPERIMENT_CONFIG
    if config_path.is_file():
        try:
            config = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Could not detect experiment kind from {config_path}: {e}")
            return KIND_UNKNOWN
        objective_name = config.get("objective_name", "") if isinstance(config, dict) else ""
        if not isinstance(objective_name, str):
            return KIND_UNKNOWN
        if "lotka_volterra" in objective_name:
            return KIND_LV4D
        if "deuflhard" in objective_name:
            return KIND_DEUFLHARD

    return KIND_UNKNOWN
