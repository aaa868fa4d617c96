"""
Normalization helpers for loosely typed provider payloads.

Quota endpoints disagree on field casing (``remaining_fraction`` vs
``remainingFraction``), on value types (numbers arrive as strings, booleans as
``"true"``) and on which legacy field names are populated. Every fetcher goes
through these helpers so that:

- ``None`` always means "unknown" and is never silently turned into ``0``
- fractions end up in [0, 1] and percentages in [0, 100]
- alias lookups follow one rule: the first alias whose raw value is present wins
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, TypeVar

T = TypeVar("T")

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def clamp_fraction(value: Optional[float]) -> Optional[float]:
    """Clamp a remaining fraction into [0, 1], keeping unknown as None."""
    if value is None:
        return None
    return clamp(value, 0.0, 1.0)


def clamp_percent(value: Optional[float]) -> Optional[float]:
    """Clamp a percentage into [0, 100], keeping unknown as None."""
    if value is None:
        return None
    return clamp(value, 0.0, 100.0)


def normalize_string_value(value: Any) -> Optional[str]:
    """Return a stripped, non-empty string, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return None


def normalize_auth_index_value(value: Any) -> Optional[str]:
    """Normalize an auth index, which the management API may send as int or str."""
    return normalize_string_value(value)


def normalize_number_value(value: Any) -> Optional[float]:
    """Return a finite float parsed from a number or numeric string, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def normalize_boolean_value(value: Any) -> Optional[bool]:
    """Interpret booleans, numbers and "true"/"false"-like strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def normalize_quota_fraction(value: Any) -> Optional[float]:
    """Normalize a remaining fraction.

    Accepts numbers (already fractions) and percent strings such as ``"42%"``.
    The result is clamped into [0, 1].
    """
    if isinstance(value, str) and value.strip().endswith("%"):
        percent = normalize_number_value(value.strip()[:-1])
        if percent is None:
            return None
        return clamp_fraction(percent / 100)
    return clamp_fraction(normalize_number_value(value))


def normalize_plan_type(value: Any) -> Optional[str]:
    """Lower-case plan identifier ("plus", "team", ...), or None."""
    text = normalize_string_value(value)
    return text.lower() if text else None


def as_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    """Return value if it is a JSON object (not an array), else None."""
    if isinstance(value, Mapping):
        return value
    return None


def first_present(
    source: Optional[Mapping[str, Any]],
    *aliases: str,
    normalizer: Optional[Callable[[Any], Optional[T]]] = None,
) -> Any:
    """Return the value of the first alias present in source.

    "Present" means the key exists with a non-None value. When a normalizer is
    given it is applied to that first present value only; later aliases are not
    consulted even if normalization yields None.
    """
    if not source:
        return None
    for alias in aliases:
        raw = source.get(alias)
        if raw is None:
            continue
        return normalizer(raw) if normalizer else raw
    return None


def parse_json_payload(body: Any) -> Optional[dict]:
    """Parse a response body into a JSON object, or None when it is not one."""
    if isinstance(body, Mapping):
        return dict(body)
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str):
        return None
    text = body.strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime (naive values are UTC)."""
    text = normalize_string_value(value)
    if not text or not isinstance(value, str):
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_iso_timestamp(value: Any) -> Optional[int]:
    """Parse an ISO-8601 string into Unix seconds, or None when invalid."""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return math.floor(parsed.timestamp())
