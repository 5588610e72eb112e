"""Cross-distance handicap estimates.

The formulas come from the club's handicap spreadsheet, which stores times
as a fraction of a day (one hour is 1/24). A result that comes out negative
is clamped to ``00:00``; callers treat ``00:00`` as "no usable handicap".
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from .errors import RaceDataError
from .runners import current_handicap, other_distance
from .timing import format_handicap_time, parse_handicap_time, round_to_nearest_15_seconds

logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

NO_HANDICAP = "00:00"

_ONE_HOUR = 1 / 24
_FIVE_SIXTHS_HOUR = (5 / 6) * (1 / 24)
_DISTANCE_RATIO = 2.1


def _to_fraction(handicap: str) -> float:
    return parse_handicap_time(handicap) / MS_PER_DAY


def _from_fraction(fraction: float) -> str:
    ms = max(0.0, fraction * MS_PER_DAY)
    return format_handicap_time(round_to_nearest_15_seconds(ms))


def convert_10k_to_5k(handicap_10k: str | None) -> str:
    """Estimate a 5 km handicap from a 10 km one."""
    if not handicap_10k:
        return NO_HANDICAP
    try:
        h = _to_fraction(handicap_10k)
        return _from_fraction(_FIVE_SIXTHS_HOUR - (_ONE_HOUR - h) / _DISTANCE_RATIO)
    except RaceDataError:
        logger.warning("handicap_conversion_failed direction=10k_to_5k input=%r", handicap_10k)
        return NO_HANDICAP


def convert_5k_to_10k(handicap_5k: str | None) -> str:
    """Estimate a 10 km handicap from a 5 km one.

    Most 5 km handicaps under about 21:30 yield ``00:00``.
    """
    if not handicap_5k:
        return NO_HANDICAP
    try:
        h = _to_fraction(handicap_5k)
        return _from_fraction(_ONE_HOUR - (_FIVE_SIXTHS_HOUR - h) * _DISTANCE_RATIO)
    except RaceDataError:
        logger.warning("handicap_conversion_failed direction=5k_to_10k input=%r", handicap_5k)
        return NO_HANDICAP


def _has_usable_handicap(handicap: str | None) -> bool:
    if not handicap:
        return False
    try:
        return parse_handicap_time(handicap) > 0
    except RaceDataError:
        return False


def resolve_handicap_for_distance(runner: Dict[str, Any], distance: str) -> Tuple[str, bool]:
    """Return ``(handicap, is_calculated)`` for ``distance``.

    The official handicap wins when present and non-zero. Otherwise the other
    distance's official handicap is converted (``is_calculated`` is True even
    if the estimate is ``00:00``). With neither available the result is
    ``("00:00", False)``.
    """
    official = current_handicap(runner, distance)
    if _has_usable_handicap(official):
        return official, False

    source = current_handicap(runner, other_distance(distance))
    if source:
        convert = convert_10k_to_5k if distance == "5km" else convert_5k_to_10k
        return convert(source), True

    return NO_HANDICAP, False


__all__ = [
    "NO_HANDICAP",
    "convert_10k_to_5k",
    "convert_5k_to_10k",
    "resolve_handicap_for_distance",
]
