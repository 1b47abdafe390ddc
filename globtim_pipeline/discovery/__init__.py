"""Experiment discovery.

Components:
    - is_experiment_complete / parse_completion_metadata: completion detection
    - find_completed_experiments / scan_for_experiments: incremental scanning
    - discover_experiment_kind: routing tag for analysis collaborators
    - MetadataValue variants: typed completion-marker values
"""

from globtim_pipeline.discovery.completion import (
    COMPLETION_MARKER,
    EXPERIMENT_CONFIG,
    RESULTS_SUMMARY,
    is_experiment_complete,
    parse_completion_metadata,
)
from globtim_pipeline.discovery.metadata import (
    BoolValue,
    CompletionMetadata,
    FloatValue,
    IntValue,
    MetadataValue,
    StringValue,
    TimestampValue,
    coerce_marker_value,
    metadata_timestamp,
)
from globtim_pipeline.discovery.scanner import (
    DEFAULT_OBJECTIVE_FAMILY,
    discover_experiment_kind,
    find_completed_experiments,
    normalize_path,
    scan_for_experiments,
)

__all__ = [
    # Completion
    "COMPLETION_MARKER",
    "EXPERIMENT_CONFIG",
    "RESULTS_SUMMARY",
    "is_experiment_complete",
    "parse_completion_metadata",
    # Metadata values
    "BoolValue",
    "CompletionMetadata",
    "FloatValue",
    "IntValue",
    "MetadataValue",
    "StringValue",
    "TimestampValue",
    "coerce_marker_value",
    "metadata_timestamp",
    # Scanning
    "DEFAULT_OBJECTIVE_FAMILY",
    "discover_experiment_kind",
    "find_completed_experiments",
    "normalize_path",
    "scan_for_experiments",
]
