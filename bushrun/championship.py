"""Season championship ledger.

Each runner carries a compact per-distance history string, one entry per
race month::

    month:position:points:time|month:position:points:time

``position`` is the finishing rank, or ``DNF`` / ``ES`` / ``ST`` for
did-not-finish, early start and starter/timekeeper duty. ``time`` is the
finish time in whole seconds. Entries are kept sorted by month.

Inside this module positions are :class:`Finished` or one of the status
markers; the string literals only appear in :func:`parse_race_history` and
:func:`encode_race_history`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import InvalidFormat, InvalidMonth, InvalidPoints, InvalidTime
from .runners import (
    DISTANCES,
    STATUS_DNF,
    STATUS_EARLY_START,
    STATUS_STARTER_TIMEKEEPER,
    history_field,
    is_official,
    points_field,
)
from .settings import build_lookup, load_settings

ENTRY_SEPARATOR = "|"
FIELD_SEPARATOR = ":"
MAX_POINTS = 20

_RANK_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class Finished:
    rank: int


@dataclass(frozen=True)
class DidNotFinish:
    pass


@dataclass(frozen=True)
class EarlyStart:
    pass


@dataclass(frozen=True)
class StarterTimekeeper:
    pass


Position = Union[Finished, DidNotFinish, EarlyStart, StarterTimekeeper]

DID_NOT_FINISH = DidNotFinish()
EARLY_START = EarlyStart()
STARTER_TIMEKEEPER = StarterTimekeeper()

_MARKER_CODES = {DID_NOT_FINISH: "DNF", EARLY_START: "ES", STARTER_TIMEKEEPER: "ST"}
_CODE_MARKERS = {code: marker for marker, code in _MARKER_CODES.items()}
_STATUS_MARKERS = {
    STATUS_DNF: DID_NOT_FINISH,
    STATUS_EARLY_START: EARLY_START,
    STATUS_STARTER_TIMEKEEPER: STARTER_TIMEKEEPER,
}


@dataclass(frozen=True)
class RaceHistoryEntry:
    month: int
    position: Position
    points: int
    time: int


# Load scoring tables from settings.json.
_CHAMPIONSHIP = load_settings()["championship"]
_POINTS_BY_RANK, _POINTS_DEFAULT = build_lookup(_CHAMPIONSHIP["points_by_rank"], "rank", "points")
_STARTER_TIMEKEEPER_POINTS = int(_CHAMPIONSHIP["starter_timekeeper_points"])
_NON_FINISHER_POINTS = int(_CHAMPIONSHIP["non_finisher_points"])
BEST_OF = int(_CHAMPIONSHIP["best_of"])


def position_for(finish_position: Optional[int], status: Optional[str] = None) -> Optional[Position]:
    """Map a runner's placing and status onto a history position."""
    if status in _STATUS_MARKERS:
        return _STATUS_MARKERS[status]
    if finish_position is None:
        return None
    return Finished(int(finish_position))


def encode_position(position: Position) -> str:
    if isinstance(position, Finished):
        return str(position.rank)
    return _MARKER_CODES[position]


def decode_position(text: str) -> Position:
    if text in _CODE_MARKERS:
        return _CODE_MARKERS[text]
    if _RANK_RE.fullmatch(text) and int(text) > 0:
        return Finished(int(text))
    raise InvalidFormat(f"Invalid championship position {text!r}")


def _parse_int(text: str, error, label: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise error(f"Invalid championship {label} {text!r}")
    return int(text)


def parse_race_history(history: str | None) -> List[RaceHistoryEntry]:
    """Parse a history string; empty or blank text gives an empty list."""
    if not history or not history.strip():
        return []
    entries: List[RaceHistoryEntry] = []
    for chunk in history.strip().split(ENTRY_SEPARATOR):
        fields = chunk.split(FIELD_SEPARATOR)
        if len(fields) != 4:
            raise InvalidFormat(
                f"Invalid championship entry {chunk!r}: expected month:position:points:time"
            )
        month_s, position_s, points_s, time_s = (f.strip() for f in fields)
        month = _parse_int(month_s, InvalidMonth, "month")
        if not 1 <= month <= 12:
            raise InvalidMonth(f"Invalid championship month {month} in {chunk!r}")
        points = _parse_int(points_s, InvalidPoints, "points")
        if not 0 <= points <= MAX_POINTS:
            raise InvalidPoints(f"Invalid championship points {points} in {chunk!r}")
        seconds = _parse_int(time_s, InvalidTime, "time")
        if seconds < 0:
            raise InvalidTime(f"Invalid championship time {seconds} in {chunk!r}")
        entries.append(RaceHistoryEntry(month, decode_position(position_s), points, seconds))
    return entries


def encode_race_history(entries: Iterable[RaceHistoryEntry]) -> str:
    return ENTRY_SEPARATOR.join(
        FIELD_SEPARATOR.join(
            (str(e.month), encode_position(e.position), str(e.points), str(e.time))
        )
        for e in entries
    )


def points_for_position(finish_position: Optional[int], status: Optional[str] = None) -> int:
    """Championship points for one race.

    Starters/timekeepers earn a fixed award; DNF and early starters earn the
    participation point; finishers score by rank.
    """
    if status == STATUS_STARTER_TIMEKEEPER:
        return _STARTER_TIMEKEEPER_POINTS
    if status in (STATUS_DNF, STATUS_EARLY_START):
        return _NON_FINISHER_POINTS
    if finish_position is None:
        return 0
    return int(_POINTS_BY_RANK.get(int(finish_position), _POINTS_DEFAULT))


def best_of_total(history: str | None, best_of: int = BEST_OF) -> int:
    """Sum of the ``best_of`` highest race scores in ``history``."""
    points = sorted((e.points for e in parse_race_history(history)), reverse=True)
    return sum(points[:best_of])


def best8_total(history: str | None) -> int:
    return best_of_total(history, 8)


def append_or_replace_entry(
    history: str | None, month: int, position: Position | str, points: int, time: int
) -> str:
    """Record a race result for ``month``, replacing any existing entry for it."""
    if isinstance(position, str):
        position = decode_position(position)
    entries = parse_race_history(history)
    new_entry = RaceHistoryEntry(int(month), position, int(points), int(time))
    for idx, entry in enumerate(entries):
        if entry.month == new_entry.month:
            entries[idx] = new_entry
            break
    else:
        entries.append(new_entry)
    entries.sort(key=lambda e: e.month)
    return encode_race_history(entries)


def update_championship_data(runner: Dict[str, Any], race_month: int) -> Dict[str, Any]:
    """Fold this race into the runner's history for their raced distance.

    Provisional runners and runners without a placing or race-day status are
    returned unchanged.
    """
    distance = runner["distance"]
    if not is_official(runner, distance):
        return runner
    status = runner.get("status")
    finish_position = runner.get("finish_position")
    position = position_for(finish_position, status)
    if position is None:
        return runner
    if not 1 <= int(race_month) <= 12:
        raise InvalidMonth(f"Invalid race month {race_month}")

    points = points_for_position(finish_position, status)
    finish_time = runner.get("finish_time")
    seconds = int(finish_time // 1000) if finish_time is not None else 0

    key = history_field(distance)
    history = append_or_replace_entry(runner.get(key), race_month, position, points, seconds)
    return {**runner, key: history, points_field(distance): best_of_total(history)}


def compute_championship_standings(
    runners: Iterable[Dict[str, Any]], distance: str, limit: Optional[int] = 10
) -> List[Dict[str, Any]]:
    """Rank official runners of ``distance`` by season points (high points wins).

    Returns:
        Standings dictionaries with ``place``, ``member_number``, ``full_name``,
        ``points`` and ``races``.
    """
    if distance not in DISTANCES:
        raise ValueError(f"Unknown distance {distance!r}")
    key = points_field(distance)
    standings: List[Dict[str, Any]] = []
    for runner in runners:
        points = runner.get(key) or 0
        if runner.get("distance") != distance or not is_official(runner, distance) or points <= 0:
            continue
        standings.append(
            {
                "member_number": runner.get("member_number"),
                "full_name": runner.get("full_name"),
                "points": points,
                "races": len(parse_race_history(runner.get(history_field(distance)))),
            }
        )

    standings.sort(key=lambda r: (-r["points"], r["full_name"] or "", r["member_number"]))
    if limit is not None:
        standings = standings[:limit]

    for place, entry in enumerate(standings, start=1):
        entry["place"] = place

    return standings


__all__ = [
    "BEST_OF",
    "DID_NOT_FINISH",
    "EARLY_START",
    "STARTER_TIMEKEEPER",
    "DidNotFinish",
    "EarlyStart",
    "Finished",
    "Position",
    "RaceHistoryEntry",
    "StarterTimekeeper",
    "append_or_replace_entry",
    "best8_total",
    "best_of_total",
    "compute_championship_standings",
    "decode_position",
    "encode_position",
    "encode_race_history",
    "parse_race_history",
    "points_for_position",
    "position_for",
    "update_championship_data",
]
