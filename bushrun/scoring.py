"""Handicap adjustment after a race.

Everyone is handicapped to finish at the target time for their distance.
Podium finishers who beat it get a larger start delay next time, the middle
of the field is left alone, and back markers get a smaller one.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .championship import update_championship_data
from .runners import (
    DISTANCES,
    STATUS_DNF,
    STATUS_EARLY_START,
    STATUS_STARTER_TIMEKEEPER,
    current_handicap,
    is_eligible_finisher,
)
from .settings import build_lookup, load_settings
from .timing import MS_PER_MINUTE, MS_PER_SECOND, format_handicap_time, parse_handicap_time, round_up_to_5_seconds

logger = logging.getLogger(__name__)


def _build_rules(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    rules: Dict[str, Dict[str, Any]] = {}
    for distance in DISTANCES:
        table = raw[distance]
        minimums, _ = build_lookup(table["minimum_increase_by_rank"], "rank", "seconds")
        rules[distance] = {
            "target_ms": int(table["target_finish_minutes"] * MS_PER_MINUTE),
            "minimum_increase_ms": {rank: int(s * MS_PER_SECOND) for rank, s in minimums.items()},
            "unchanged_through_rank": int(table["unchanged_through_rank"]),
            "back_marker_delta_ms": int(table["back_marker_delta_s"] * MS_PER_SECOND),
            "starter_timekeeper_delta_ms": int(table["starter_timekeeper_delta_s"] * MS_PER_SECOND),
        }
    return rules


# Load configuration from settings.json.
_RULES = _build_rules(load_settings()["handicap_rules"])


def target_time_ms(distance: str) -> int:
    """Return the design finish time for ``distance``."""
    return _RULES[distance]["target_ms"]


def handicap_adjustment(distance: str, position: int, finish_time_ms: int) -> int:
    """Return the handicap change in milliseconds for a finisher.

    Args:
        distance: ``"5km"`` or ``"10km"``.
        position: 1-based finishing position within the distance.
        finish_time_ms: Elapsed time from the race start.

    Returns:
        Positive to lengthen the start delay, negative to shorten it. Podium
        adjustments are the larger of the rank minimum and the margin by which
        the target was beaten, rounded up to 5 seconds.
    """
    rules = _RULES[distance]
    minimum = rules["minimum_increase_ms"].get(position)
    if minimum is not None:
        time_difference = finish_time_ms - rules["target_ms"]
        return round_up_to_5_seconds(max(minimum, -time_difference))
    if position <= rules["unchanged_through_rank"]:
        return 0
    return rules["back_marker_delta_ms"]


def _apply_delta(handicap: str, delta_ms: int) -> str:
    if delta_ms == 0:
        return handicap
    return format_handicap_time(max(0, parse_handicap_time(handicap) + delta_ms))


def _without_race_outcome(runner: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(runner)
    result.pop("finish_position", None)
    result.pop("new_handicap", None)
    return result


def _non_finisher_result(runner: Dict[str, Any]) -> Dict[str, Any]:
    """DNF and early starters keep their handicap; starters/timekeepers get the duty adjustment."""
    result = _without_race_outcome(runner)
    handicap = current_handicap(runner)
    if not handicap:
        return result
    if runner.get("status") == STATUS_STARTER_TIMEKEEPER:
        delta = _RULES[runner["distance"]]["starter_timekeeper_delta_ms"]
        result["new_handicap"] = _apply_delta(handicap, delta)
    else:
        result["new_handicap"] = handicap
    return result


def _rank_distance(results: List[Dict[str, Any]], distance: str) -> Tuple[int, int]:
    """Assign positions and new handicaps in place for one distance."""
    finishers = [
        r for r in results if r.get("distance") == distance and is_eligible_finisher(r)
    ]
    finishers.sort(key=lambda r: r["finish_time"])

    skipped = 0
    for position, result in enumerate(finishers, start=1):
        result["finish_position"] = position
        handicap = current_handicap(result, distance)
        if not handicap:
            skipped += 1
            continue
        delta = handicap_adjustment(distance, position, result["finish_time"])
        result["new_handicap"] = _apply_delta(handicap, delta)
    return len(finishers), skipped


def calculate_handicaps(runners: Iterable[Dict[str, Any]], race_month: Optional[int] = None) -> List[Dict[str, Any]]:
    """Calculate finishing positions and next-race handicaps for one race.

    ``runners`` may mix both distances. Each returned record is a new dict in
    the same order as the input. When ``race_month`` is given the
    championship history of every participant is updated for that month.
    """
    results: List[Dict[str, Any]] = []
    for runner in runners:
        status = runner.get("status")
        if status in (STATUS_DNF, STATUS_EARLY_START, STATUS_STARTER_TIMEKEEPER):
            results.append(_non_finisher_result(runner))
        else:
            # Outcomes left over from an earlier run are recomputed or dropped.
            results.append(_without_race_outcome(runner))

    for distance in DISTANCES:
        finishers, skipped = _rank_distance(results, distance)
        logger.debug(
            "handicap_calc distance=%s finishers=%d skipped_no_handicap=%d",
            distance,
            finishers,
            skipped,
        )

    if race_month is not None:
        results = [update_championship_data(r, race_month) for r in results]

    return results


__all__ = [
    "calculate_handicaps",
    "handicap_adjustment",
    "target_time_ms",
]
