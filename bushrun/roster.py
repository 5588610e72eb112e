"""Roster and results CSV import/export.

Column sets are fixed: the files round-trip through spreadsheets and the club
website, so headers and their order must not drift.
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from io import StringIO
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .championship import parse_race_history, points_for_position
from .errors import (
    DuplicateMemberNumber,
    EmptyInput,
    InvalidDistance,
    InvalidFormat,
    InvalidHandicapFormat,
    InvalidMemberNumber,
    MissingHeaders,
    RaceDataError,
)
from .runners import (
    DISTANCES,
    DISTANCE_5K,
    DISTANCE_10K,
    STATUS_DNF,
    STATUS_EARLY_START,
    STATUS_FINISHED,
    current_handicap,
    handicap_field,
    is_official,
)
from .timing import format_finish_time, parse_handicap_time

REQUIRED_HEADERS = ("member_number", "full_name", "is_financial_member", "distance")

NEXT_RACE_HEADERS = (
    "member_number",
    "full_name",
    "is_financial_member",
    "distance",
    "current_handicap_5k",
    "current_handicap_10k",
    "is_official_5k",
    "is_official_10k",
    "championship_races_5k",
    "championship_races_10k",
    "championship_points_5k",
    "championship_points_10k",
)

RESULTS_HEADERS = (
    "member_number",
    "full_name",
    "distance",
    "status",
    "finish_position",
    "finish_time",
    "old_handicap",
    "new_handicap",
    "is_official_5k",
    "is_official_10k",
    "championship_points_earned",
    "championship_races_5k",
    "championship_races_10k",
    "championship_points_5k",
    "championship_points_10k",
)

FILENAME_PREFIX = "bushrun-next-race"

_TRUE_VALUES = {"true", "yes", "1"}
_MEMBER_NUMBER_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


# ---------------------------
# Import
# ---------------------------

def _parse_bool(value: Optional[str], default: bool) -> bool:
    text = (value or "").strip().lower()
    if not text:
        return default
    return text in _TRUE_VALUES


def _parse_member_number(value: Optional[str], line: int) -> int:
    text = (value or "").strip()
    if not _MEMBER_NUMBER_RE.fullmatch(text) or int(text) <= 0:
        raise InvalidMemberNumber(
            f"Invalid member number {text!r} at row {line}. Must be a positive integer."
        )
    return int(text)


def _parse_handicap(value: str, distance: str, line: int) -> str:
    try:
        parse_handicap_time(value)
    except RaceDataError as exc:
        raise InvalidHandicapFormat(
            f"Invalid {distance} handicap format {value!r} at row {line}. Use MM:SS format (e.g. \"02:15\")"
        ) from exc
    return value


def _parse_history(value: str, line: int) -> str:
    try:
        parse_race_history(value)
    except RaceDataError as exc:
        raise type(exc)(f"{exc} at row {line}") from exc
    return value


def _parse_points(value: str, column: str, line: int) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidFormat(f"Invalid {column} {value!r} at row {line}. Must be an integer.") from None


def _runner_from_row(cells: Dict[str, str], line: int, member_number: int) -> Dict[str, Any]:
    distance = (cells.get("distance") or "").strip()
    if distance not in DISTANCES:
        raise InvalidDistance(
            f"Invalid distance {distance!r} at row {line}. Must be \"5km\" or \"10km\""
        )

    runner: Dict[str, Any] = {
        "member_number": member_number,
        "full_name": (cells.get("full_name") or "").strip(),
        "is_financial_member": _parse_bool(cells.get("is_financial_member"), False),
        "distance": distance,
        "checked_in": False,
    }

    for dist in (DISTANCE_5K, DISTANCE_10K):
        key = handicap_field(dist)
        value = (cells.get(key) or "").strip()
        if value:
            runner[key] = _parse_handicap(value, dist, line)

    for suffix in ("5k", "10k"):
        runner[f"is_official_{suffix}"] = _parse_bool(cells.get(f"is_official_{suffix}"), True)

        races_key = f"championship_races_{suffix}"
        races = (cells.get(races_key) or "").strip()
        if races:
            runner[races_key] = _parse_history(races, line)

        points_key = f"championship_points_{suffix}"
        points = (cells.get(points_key) or "").strip()
        if points:
            runner[points_key] = _parse_points(points, points_key, line)

    return runner


def parse_roster(text: str) -> List[Dict[str, Any]]:
    """Parse roster CSV text into runner records.

    The first non-blank line is the header. Unknown columns are ignored and
    missing optional columns leave the field unset.

    Raises:
        EmptyInput: ``text`` is blank.
        MissingHeaders: a required column is absent.
        InvalidMemberNumber, DuplicateMemberNumber, InvalidDistance,
        InvalidHandicapFormat: a data row is malformed (message names the row).
    """
    if not text or not text.strip():
        raise EmptyInput("CSV file is empty")

    reader = csv.reader(StringIO(text.lstrip("\ufeff")))
    headers: Optional[List[str]] = None
    runners: List[Dict[str, Any]] = []
    seen: set[int] = set()

    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if headers is None:
            headers = [h.strip().lower() for h in row]
            missing = [h for h in REQUIRED_HEADERS if h not in headers]
            if missing:
                raise MissingHeaders(missing)
            continue

        line = reader.line_num
        cells = {name: row[idx] for idx, name in enumerate(headers) if idx < len(row)}
        member_number = _parse_member_number(cells.get("member_number"), line)
        if member_number in seen:
            raise DuplicateMemberNumber(f"Duplicate member number {member_number} at row {line}")
        seen.add(member_number)
        runners.append(_runner_from_row(cells, line, member_number))

    return runners


def validate_roster(runners: Sequence[Dict[str, Any]]) -> List[ValidationError]:
    """Report runners missing a handicap for their distance or a name."""
    errors: List[ValidationError] = []
    for index, runner in enumerate(runners):
        key = handicap_field(runner["distance"])
        if not runner.get(key):
            errors.append(ValidationError(
                f"runner[{index}].{key}",
                f"{runner.get('full_name')} ({runner.get('member_number')}) is registered for "
                f"{runner['distance']} but missing handicap time",
            ))
        if not (runner.get("full_name") or "").strip():
            errors.append(ValidationError(
                f"runner[{index}].full_name",
                f"Runner {runner.get('member_number')} has empty name",
            ))
    return errors


# ---------------------------
# Export
# ---------------------------

def _quoted(value: Any) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def _plain(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if any(ch in text for ch in ',"\n\r'):
        return _quoted(text)
    return text


def _write(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    lines = [",".join(headers)]
    lines.extend(",".join(row) for row in rows)
    return "\n".join(lines)


def _roster_row(runner: Dict[str, Any], handicap_5k: Optional[str], handicap_10k: Optional[str]) -> List[str]:
    return [
        _plain(runner.get("member_number")),
        _quoted(runner.get("full_name")),
        _plain(bool(runner.get("is_financial_member"))),
        _plain(runner.get("distance")),
        _plain(handicap_5k),
        _plain(handicap_10k),
        _plain(is_official(runner, DISTANCE_5K)),
        _plain(is_official(runner, DISTANCE_10K)),
        _quoted(runner.get("championship_races_5k")),
        _quoted(runner.get("championship_races_10k")),
        _plain(runner.get("championship_points_5k")),
        _plain(runner.get("championship_points_10k")),
    ]


def _outgoing_handicap(runner: Dict[str, Any], distance: str) -> Optional[str]:
    if runner.get("distance") == distance and runner.get("new_handicap"):
        return runner["new_handicap"]
    return runner.get(handicap_field(distance)) or None


def serialize_next_race_roster(runners: Iterable[Dict[str, Any]]) -> str:
    """Roster for the next race; the new handicap becomes the current one."""
    return _write(
        NEXT_RACE_HEADERS,
        (
            _roster_row(r, _outgoing_handicap(r, DISTANCE_5K), _outgoing_handicap(r, DISTANCE_10K))
            for r in runners
        ),
    )


def serialize_season_rollover(runners: Iterable[Dict[str, Any]]) -> str:
    """Year-end roster written from the handicaps and championship fields as supplied."""
    return _write(
        NEXT_RACE_HEADERS,
        (
            _roster_row(r, r.get("current_handicap_5k") or None, r.get("current_handicap_10k") or None)
            for r in runners
        ),
    )


def _in_results(runner: Dict[str, Any]) -> bool:
    return runner.get("finish_time") is not None or runner.get("status") in (STATUS_DNF, STATUS_EARLY_START)


def serialize_results(runners: Iterable[Dict[str, Any]]) -> str:
    """Full race results, grouped by distance with finishers first by position."""
    included = [r for r in runners if _in_results(r)]
    # Stable sort keeps non-finishers in input order.
    included.sort(key=lambda r: (
        r.get("distance") or "",
        0 if r.get("finish_position") else 1,
        r.get("finish_position") or 0,
    ))

    rows = []
    for runner in included:
        status = runner.get("status") or (STATUS_FINISHED if runner.get("finish_time") is not None else "")
        finish_time = runner.get("finish_time")
        earned = 0
        if is_official(runner):
            earned = points_for_position(runner.get("finish_position"), runner.get("status"))
        rows.append([
            _plain(runner.get("member_number")),
            _quoted(runner.get("full_name")),
            _plain(runner.get("distance")),
            _plain(status),
            _plain(runner.get("finish_position")),
            format_finish_time(finish_time) if finish_time is not None else "",
            _plain(current_handicap(runner)),
            _plain(runner.get("new_handicap")),
            _plain(is_official(runner, DISTANCE_5K)),
            _plain(is_official(runner, DISTANCE_10K)),
            _plain(earned),
            _quoted(runner.get("championship_races_5k")),
            _quoted(runner.get("championship_races_10k")),
            _plain(runner.get("championship_points_5k")),
            _plain(runner.get("championship_points_10k")),
        ])
    return _write(RESULTS_HEADERS, rows)


# ---------------------------
# File naming
# ---------------------------

def next_race_filename(year: int, month: int, season_rollover: bool = False, prefix: str = FILENAME_PREFIX) -> str:
    """``bushrun-next-race-YYYY-MM.csv``, with ``-rollover`` for year-end files."""
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Invalid month {month}")
    suffix = "-rollover" if season_rollover else ""
    return f"{prefix}-{int(year):04d}-{int(month):02d}{suffix}.csv"


def parse_roster_filename(filename: str, prefix: str = FILENAME_PREFIX) -> Optional[Dict[str, Any]]:
    """Extract year, month and rollover flag from an exported roster name.

    The ``.csv`` extension is optional. Returns None when the name does not
    match or the month is outside 1-12.
    """
    match = re.search(
        rf"{re.escape(prefix)}-(\d{{4}})-(\d{{2}})(-rollover)?(?:\.csv)?", filename or "", re.IGNORECASE
    )
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return {
        "year": int(match.group(1)),
        "month": month,
        "is_season_rollover": match.group(3) is not None,
        "filename": filename,
    }


__all__ = [
    "FILENAME_PREFIX",
    "NEXT_RACE_HEADERS",
    "REQUIRED_HEADERS",
    "RESULTS_HEADERS",
    "ValidationError",
    "next_race_filename",
    "parse_roster",
    "parse_roster_filename",
    "serialize_next_race_roster",
    "serialize_results",
    "serialize_season_rollover",
    "validate_roster",
]
