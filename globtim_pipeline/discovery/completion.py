"""Experiment completion detection.

A directory is a finished run if it holds a ``.EXPERIMENT_COMPLETE``
marker, or, for legacy runs, a ``results_summary.json``. Nothing else
counts: a populated directory without either file is still in progress.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from globtim_pipeline.discovery.metadata import (
    BoolValue,
    CompletionMetadata,
    TimestampValue,
    from_json_value,
    parse_marker_line,
)

logger = logging.getLogger(__name__)

COMPLETION_MARKER = ".EXPERIMENT_COMPLETE"
RESULTS_SUMMARY = "results_summary.json"
EXPERIMENT_CONFIG = "experiment_config.json"

# Config fields copied into legacy metadata
LEGACY_CONFIG_FIELDS = ("GN", "domain_range", "seed")


def is_experiment_complete(experiment_dir: str | Path) -> bool:
    """Check whether a directory holds a finished experiment."""
    experiment_dir = Path(experiment_dir)
    return (experiment_dir / COMPLETION_MARKER).is_file() or (
        experiment_dir / RESULTS_SUMMARY
    ).is_file()


def directory_mtime(path: str | Path) -> datetime | None:
    """Modification time of a path, or None if it cannot be read."""
    try:
        return datetime.fromtimestamp(Path(path).stat().st_mtime)
    except OSError:
        return None


def read_completion_marker(marker_path: Path) -> CompletionMetadata:
    """Parse every ``key=value`` line of a marker file.

    Raises:
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not UTF-8 text.
    """
    metadata: CompletionMetadata = {}
    with open(marker_path, encoding="utf-8") as f:
        for line in f:
            parsed = parse_marker_line(line)
            if parsed is not None:
                key, value = parsed
                metadata[key] = value
    return metadata


def legacy_metadata(experiment_dir: Path) -> CompletionMetadata:
    """Synthesize metadata for a run without a readable marker.

    Uses the directory modification time as completion time (now if that
    fails) and copies GN, domain_range and seed from the experiment
    config when present. Never raises.
    """
    completed_at = directory_mtime(experiment_dir)
    metadata: CompletionMetadata = {
        "legacy": BoolValue(True),
        "completed_at": TimestampValue(completed_at or datetime.now()),
    }

    config_path = experiment_dir / EXPERIMENT_CONFIG
    if not config_path.is_file():
        return metadata

    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to parse experiment config {config_path}: {e}")
        return metadata
    if not isinstance(config, dict):
        logger.warning(f"Experiment config is not an object: {config_path}")
        return metadata

    for field_name in LEGACY_CONFIG_FIELDS:
        value = from_json_value(config.get(field_name))
        if value is not None:
            metadata[field_name] = value
    return metadata


def parse_completion_metadata(experiment_dir: str | Path) -> CompletionMetadata:
    """Read completion metadata for an experiment directory.

    The marker file is preferred. When it is absent or unreadable, legacy
    metadata is synthesized instead; read failures are logged as warnings
    and never raised.

    Args:
        experiment_dir: Experiment directory.

    Returns:
        Mapping of key to typed value.
    """
    experiment_dir = Path(experiment_dir)
    marker_path = experiment_dir / COMPLETION_MARKER

    if marker_path.is_file():
        try:
            return read_completion_marker(marker_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse completion marker in {experiment_dir}: {e}")

    return legacy_metadata(experiment_dir)
