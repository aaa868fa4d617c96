"""Reset time formatting shared by the quota fetchers."""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from .normalize import first_present, normalize_number_value, parse_iso_datetime

UNKNOWN_RESET_LABEL = "-"
RESET_LABEL_FORMAT = "%m/%d %H:%M"


def _format_local(moment: datetime) -> str:
    return moment.astimezone().strftime(RESET_LABEL_FORMAT)


def format_quota_reset_time(value: Any) -> str:
    """Format an ISO reset timestamp as local "MM/DD HH:MM", or "-"."""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return UNKNOWN_RESET_LABEL
    return _format_local(parsed)


def format_codex_reset_label(
    window: Optional[Mapping[str, Any]], now: Optional[datetime] = None
) -> str:
    """Reset label for a Codex rate-limit window.

    Prefers the absolute ``reset_at`` (Unix seconds); falls back to
    ``reset_after_seconds`` counted from now. Returns "-" when neither is usable.
    """
    if not window:
        return UNKNOWN_RESET_LABEL

    reset_at = first_present(window, "reset_at", "resetAt", normalizer=normalize_number_value)
    if reset_at is not None and reset_at > 0:
        try:
            return _format_local(datetime.fromtimestamp(reset_at).astimezone())
        except (OverflowError, OSError, ValueError):
            return UNKNOWN_RESET_LABEL

    reset_after = first_present(
        window, "reset_after_seconds", "resetAfterSeconds", normalizer=normalize_number_value
    )
    if reset_after is not None and reset_after > 0:
        base = now or datetime.now().astimezone()
        try:
            return _format_local(base + timedelta(seconds=reset_after))
        except OverflowError:
            return UNKNOWN_RESET_LABEL

    return UNKNOWN_RESET_LABEL
