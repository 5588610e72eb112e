"""Runner record field names and race-day record updates.

Runner records are plain dicts keyed by the roster column names. Every helper
here returns a new dict; the record passed in is left untouched.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

DISTANCE_5K = "5km"
DISTANCE_10K = "10km"
DISTANCES = (DISTANCE_5K, DISTANCE_10K)

STATUS_FINISHED = "finished"
STATUS_DNF = "dnf"
STATUS_EARLY_START = "early_start"
STATUS_STARTER_TIMEKEEPER = "starter_timekeeper"
STATUSES = (STATUS_FINISHED, STATUS_DNF, STATUS_EARLY_START, STATUS_STARTER_TIMEKEEPER)

# Statuses that keep a runner out of the finishing order.
NON_FINISHING_STATUSES = (STATUS_DNF, STATUS_EARLY_START, STATUS_STARTER_TIMEKEEPER)

_SUFFIX = {DISTANCE_5K: "5k", DISTANCE_10K: "10k"}


def _suffix(distance: str) -> str:
    try:
        return _SUFFIX[distance]
    except KeyError:
        raise ValueError(f"Unknown distance {distance!r}; expected one of {', '.join(DISTANCES)}") from None


def handicap_field(distance: str) -> str:
    return f"current_handicap_{_suffix(distance)}"


def official_field(distance: str) -> str:
    return f"is_official_{_suffix(distance)}"


def history_field(distance: str) -> str:
    return f"championship_races_{_suffix(distance)}"


def points_field(distance: str) -> str:
    return f"championship_points_{_suffix(distance)}"


def other_distance(distance: str) -> str:
    return DISTANCE_10K if distance == DISTANCE_5K else DISTANCE_5K


def current_handicap(runner: Dict[str, Any], distance: Optional[str] = None) -> Optional[str]:
    """Return the official handicap for ``distance`` (default: raced distance)."""
    return runner.get(handicap_field(distance or runner["distance"])) or None


def is_official(runner: Dict[str, Any], distance: Optional[str] = None) -> bool:
    """Official flags default to true when absent."""
    value = runner.get(official_field(distance or runner["distance"]))
    return True if value is None else bool(value)


def is_eligible_finisher(runner: Dict[str, Any]) -> bool:
    """True for runners who take a place in the finishing order."""
    status = runner.get("status")
    return runner.get("finish_time") is not None and status in (None, STATUS_FINISHED)


def check_in(runner: Dict[str, Any], distance: Optional[str] = None) -> Dict[str, Any]:
    """Mark a runner as registered for today's race, optionally switching distance."""
    updated = {**runner, "checked_in": True}
    if distance is not None:
        _suffix(distance)
        updated["distance"] = distance
    return updated


def record_finish(runner: Dict[str, Any], finish_time_ms: int) -> Dict[str, Any]:
    if finish_time_ms < 0:
        raise ValueError(f"Finish time must not be negative: {finish_time_ms}")
    return {**runner, "finish_time": int(finish_time_ms)}


def set_status(runner: Dict[str, Any], status: Optional[str]) -> Dict[str, Any]:
    """Override the race-day status; ``None`` clears it.

    Non-finishing statuses drop any recorded finish time and position.
    """
    if status is not None and status not in STATUSES:
        raise ValueError(f"Unknown status {status!r}; expected one of {', '.join(STATUSES)}")
    updated = {**runner, "status": status}
    if status is None:
        updated.pop("status")
    elif status in NON_FINISHING_STATUSES:
        updated.pop("finish_time", None)
        updated.pop("finish_position", None)
    return updated


def adjust_finish_time(runners, member_number: int, time_text: str, race_month: Optional[int] = None):
    """Replace one runner's finish time from ``MM:SS`` text and recalculate the race."""
    from .scoring import calculate_handicaps
    from .timing import parse_handicap_time

    new_time_ms = parse_handicap_time(time_text)
    if new_time_ms <= 0:
        raise ValueError("Invalid time format. Use MM:SS format.")
    if not any(r.get("member_number") == member_number for r in runners):
        raise KeyError(member_number)
    updated = [
        record_finish(r, new_time_ms) if r.get("member_number") == member_number else r
        for r in runners
    ]
    return calculate_handicaps(updated, race_month=race_month)


__all__ = [
    "DISTANCES",
    "DISTANCE_5K",
    "DISTANCE_10K",
    "NON_FINISHING_STATUSES",
    "STATUSES",
    "STATUS_DNF",
    "STATUS_EARLY_START",
    "STATUS_FINISHED",
    "STATUS_STARTER_TIMEKEEPER",
    "adjust_finish_time",
    "check_in",
    "current_handicap",
    "handicap_field",
    "history_field",
    "is_eligible_finisher",
    "is_official",
    "official_field",
    "other_distance",
    "points_field",
    "record_finish",
    "set_status",
]
