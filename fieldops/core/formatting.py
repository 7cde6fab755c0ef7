"""
Display formatting helpers shared by the field service workspace builder.

All helpers take an explicit reference time; none of them read the clock.
Timestamps are rendered in UTC.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Optional

NOT_RECORDED: str = "Not recorded"
UNKNOWN_TIME: str = "Unknown"

_WORD_START = re.compile(r"\b\w")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding towards +infinity.

    ``round_half_up(2.5) == 3`` and ``round_half_up(-2.5) == -2``.
    """
    return int(math.floor(value + 0.5))


def humanize_key(key: str) -> str:
    """``awaiting_parts`` -> ``Awaiting Parts``."""
    return _WORD_START.sub(lambda m: m.group(0).upper(), key.replace("_", " "))


def format_number(value: float) -> str:
    """Render whole floats without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_datetime(value: Optional[datetime]) -> str:
    """Medium date + short time, e.g. ``19 Oct 2026, 14:05``."""
    if value is None:
        return NOT_RECORDED
    utc = value.astimezone(timezone.utc)
    return f"{utc.day} {utc.strftime('%b %Y, %H:%M')}"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def humanize_relative_time(value: Optional[datetime], now: datetime) -> str:
    """Describe how long ago ``value`` happened relative to ``now``.

    Buckets: ``Just now`` (< 1 min), minutes, hours, days, weeks, months,
    years.  Each unit is rounded from the unit below it; months and years
    are derived from days.
    """
    if value is None:
        return UNKNOWN_TIME

    diff_minutes = round_half_up((now - value).total_seconds() / 60)
    if diff_minutes < 1:
        return "Just now"
    if diff_minutes < 60:
        return f"{diff_minutes}m ago"

    diff_hours = round_half_up(diff_minutes / 60)
    if diff_hours < 24:
        return f"{diff_hours}h ago"

    diff_days = round_half_up(diff_hours / 24)
    if diff_days < 7:
        return f"{diff_days}d ago"

    diff_weeks = round_half_up(diff_days / 7)
    if diff_weeks < 5:
        return f"{diff_weeks}w ago"

    diff_months = round_half_up(diff_days / 30)
    if diff_months < 12:
        return f"{diff_months}mo ago"

    return f"{round_half_up(diff_days / 365)}y ago"
