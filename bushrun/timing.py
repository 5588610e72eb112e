"""Handicap and finish time parsing, formatting and rounding.

Handicaps are start delays written ``MM:SS`` (two digit minutes, two digit
seconds; minutes may exceed 59). Finish times are millisecond durations from
the race start, shown as ``M:SS.D``.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .errors import InvalidFormat, InvalidValue, NegativeTime

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND

_HANDICAP_RE = re.compile(r"[0-9]{2}:[0-9]{2}")


def is_handicap_format(text: str | None) -> bool:
    """Return True when ``text`` has the ``MM:SS`` layout (values unchecked)."""
    return bool(text) and _HANDICAP_RE.fullmatch(text) is not None


def parse_handicap_time(text: str) -> int:
    """Parse an ``MM:SS`` handicap into milliseconds.

    Raises:
        InvalidFormat: ``text`` is not exactly two digits, a colon, two digits.
        InvalidValue: the seconds field is 60 or more.
    """
    if not is_handicap_format(text):
        raise InvalidFormat(f"Invalid time format: {text!r}. Expected MM:SS format.")
    minutes, seconds = (int(part) for part in text.split(":"))
    if seconds >= 60:
        raise InvalidValue(f"Invalid time values: {text!r}. Seconds must be 0-59.")
    return (minutes * 60 + seconds) * MS_PER_SECOND


def format_handicap_time(ms: float) -> str:
    """Format milliseconds as ``MM:SS``, dropping any sub-second part."""
    if ms < 0:
        raise NegativeTime(f"Negative time not allowed: {ms}")
    total_seconds = int(ms // MS_PER_SECOND)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def format_finish_time(ms: float) -> str:
    """Format a finish duration as ``M:SS.D`` (tenths truncated)."""
    if ms < 0:
        raise NegativeTime(f"Negative time not allowed: {ms}")
    tenths = int(ms // 100)
    minutes, rem = divmod(tenths, 600)
    seconds, tenth = divmod(rem, 10)
    return f"{minutes}:{seconds:02d}.{tenth}"


def round_up_to_5_seconds(ms: float) -> int:
    """Round up to the next whole 5 seconds; non-positive input gives 0."""
    if ms <= 0:
        return 0
    total_seconds = math.ceil(ms / MS_PER_SECOND)
    remainder = total_seconds % 5
    if remainder:
        total_seconds += 5 - remainder
    return total_seconds * MS_PER_SECOND


def round_to_nearest_15_seconds(ms: float) -> int:
    """Round to the nearest 15 seconds, halves going up; non-positive gives 0."""
    if ms <= 0:
        return 0
    total_seconds = math.floor(ms / MS_PER_SECOND + 0.5)
    return math.floor(total_seconds / 15 + 0.5) * 15 * MS_PER_SECOND


def race_month_for_date(date_text: str, tz_name: str = "Australia/Sydney") -> int:
    """Return the 1-12 month of an ISO date or datetime in ``tz_name``.

    Date-only and naive values are read as UTC before conversion.
    """
    try:
        moment = datetime.fromisoformat(date_text)
    except (TypeError, ValueError) as exc:
        raise InvalidFormat(f"Invalid race date: {date_text!r}. Expected YYYY-MM-DD.") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).month


__all__ = [
    "MS_PER_MINUTE",
    "MS_PER_SECOND",
    "format_finish_time",
    "format_handicap_time",
    "is_handicap_format",
    "parse_handicap_time",
    "race_month_for_date",
    "round_to_nearest_15_seconds",
    "round_up_to_5_seconds",
]
