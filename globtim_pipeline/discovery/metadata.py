"""Typed completion metadata.

Completion markers are plain ``key=value`` text. Each value is decoded
into one variant of a small tagged union, trying these rules in order:

1. key ``completed_at``: TimestampValue, or StringValue if unparseable
2. ``true`` / ``false``: BoolValue
3. optional ``-`` followed by digits only: IntValue
4. contains ``.`` and parses as a float: FloatValue
5. anything else: StringValue
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from globtim_pipeline.registry.models import format_timestamp, parse_timestamp

COMPLETED_AT_KEY = "completed_at"

_INTEGER_RE = re.compile(r"-?\d+")


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class FloatValue:
    value: float


@dataclass(frozen=True)
class TimestampValue:
    value: datetime


MetadataValue = Union[StringValue, BoolValue, IntValue, FloatValue, TimestampValue]
CompletionMetadata = dict[str, MetadataValue]


def _parse_float(text: str) -> float | None:
    # Reject digit separators such as 1_000.5
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def coerce_marker_value(key: str, raw: str) -> MetadataValue:
    """Decode one marker value according to the fixed coercion order.

    Args:
        key: Stripped key.
        raw: Stripped value text.

    Returns:
        Decoded value variant.

    Example:
        >>> coerce_marker_value("n_degrees", "9")
        IntValue(value=9)
        >>> coerce_marker_value("l2_norm", "1.5e-3")
        FloatValue(value=0.0015)
        >>> coerce_marker_value("tag", "1e5")
        StringValue(value='1e5')
    """
    if key == COMPLETED_AT_KEY:
        stamp = parse_timestamp(raw)
        return TimestampValue(stamp) if stamp is not None else StringValue(raw)
    if raw in ("true", "false"):
        return BoolValue(raw == "true")
    if _INTEGER_RE.fullmatch(raw):
        return IntValue(int(raw))
    if "." in raw:
        number = _parse_float(raw)
        if number is not None:
            return FloatValue(number)
    return StringValue(raw)


def parse_marker_line(line: str) -> tuple[str, MetadataValue] | None:
    """Parse a ``key=value`` line, splitting on the first ``=``.

    Returns:
        (key, value) pair, or None for blank lines and lines without ``=``.
    """
    if "=" not in line:
        return None
    key, raw = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, coerce_marker_value(key, raw.strip())


def from_json_value(value: Any) -> MetadataValue | None:
    """Wrap a JSON scalar as a metadata value.

    Returns:
        Value variant, or None for null, lists and objects.
    """
    if isinstance(value, bool):
        return BoolValue(value)
    if isinstance(value, int):
        return IntValue(value)
    if isinstance(value, float):
        return FloatValue(value)
    if isinstance(value, str):
        return StringValue(value)
    return None


def metadata_timestamp(
    metadata: CompletionMetadata | None, key: str = COMPLETED_AT_KEY
) -> datetime | None:
    """Get a timestamp field, or None if absent or not a timestamp."""
    if not metadata:
        return None
    value = metadata.get(key)
    return value.value if isinstance(value, TimestampValue) else None


def to_plain(metadata: CompletionMetadata) -> dict[str, Any]:
    """Unwrap metadata into JSON-compatible plain values."""
    plain: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, TimestampValue):
            plain[key] = format_timestamp(value.value)
        else:
            plain[key] = value.value
    return plain
