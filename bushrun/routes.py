from dataclasses import asdict
from datetime import datetime
from zoneinfo import ZoneInfo

from flask import Blueprint, Response, abort, current_app, request

from .championship import compute_championship_standings
from .conversion import resolve_handicap_for_distance
from .errors import RaceDataError
from .results import aggregate_results
from .roster import (
    next_race_filename,
    parse_roster,
    serialize_next_race_roster,
    serialize_results,
    serialize_season_rollover,
    validate_roster,
)
from .runners import DISTANCES, STATUSES, handicap_field, history_field, points_field
from .scoring import calculate_handicaps
from .timing import race_month_for_date


bp = Blueprint('main', __name__)

_EXPORTS = {
    'next-race': (serialize_next_race_roster, False),
    'rollover': (serialize_season_rollover, True),
    'results': (serialize_results, False),
}


def _csv_response(filename: str, text: str) -> Response:
    return Response(
        text,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


def _runners_from_payload(data: dict) -> list[dict]:
    runners = data.get('runners')
    if not isinstance(runners, list):
        abort(400, description="Expected a 'runners' list.")
    for idx, runner in enumerate(runners):
        if not isinstance(runner, dict):
            abort(400, description=f"Runner {idx} must be an object.")
        if runner.get('distance') not in DISTANCES:
            abort(400, description=f"Runner {idx} has invalid distance {runner.get('distance')!r}.")
        if isinstance(runner.get('member_number'), bool) or not isinstance(runner.get('member_number'), int):
            abort(400, description=f"Runner {idx} has invalid member number {runner.get('member_number')!r}.")
        finish_time = runner.get('finish_time')
        if finish_time is not None and (
            isinstance(finish_time, bool) or not isinstance(finish_time, int) or finish_time < 0
        ):
            abort(400, description=f"Runner {idx} has invalid finish time {finish_time!r}.")
        if runner.get('status') not in (None, *STATUSES):
            abort(400, description=f"Runner {idx} has invalid status {runner.get('status')!r}.")
        if not isinstance(runner.get('full_name') or '', str):
            abort(400, description=f"Runner {idx} has invalid name {runner.get('full_name')!r}.")
        for distance in DISTANCES:
            for key in (handicap_field(distance), history_field(distance)):
                if runner.get(key) is not None and not isinstance(runner[key], str):
                    abort(400, description=f"Runner {idx} has invalid {key} {runner[key]!r}.")
            points = runner.get(points_field(distance))
            if points is not None and (isinstance(points, bool) or not isinstance(points, int)):
                abort(400, description=f"Runner {idx} has invalid {points_field(distance)} {points!r}.")
    return runners


def _race_month(data: dict) -> int | None:
    month = data.get('race_month')
    if month is not None:
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            abort(400, description=f"Invalid race month {month!r}. Expected 1-12.")
        return month
    race_date = data.get('race_date')
    if race_date:
        try:
            return race_month_for_date(race_date, current_app.config['RACE_TIMEZONE'])
        except RaceDataError as exc:
            abort(400, description=str(exc))
    return None


@bp.route('/health')
def health():
    return {'status': 'ok', 'rules': list(DISTANCES)}


@bp.route('/api/roster', methods=['POST'])
def upload_roster():
    """Parse an uploaded roster.

    Accepts the CSV as the raw request body or as ``{"csv": "..."}``. Returns
    the parsed runners plus non-fatal validation warnings.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        text = payload.get('csv') or ''
    else:
        text = request.get_data(as_text=True)
    try:
        runners = parse_roster(text)
    except RaceDataError as exc:
        current_app.logger.info("roster_upload_rejected error=%s", type(exc).__name__)
        abort(400, description=str(exc))
    warnings = validate_roster(runners)
    current_app.logger.info("roster_upload runners=%d warnings=%d", len(runners), len(warnings))
    return {'runners': runners, 'warnings': [asdict(w) for w in warnings]}


@bp.route('/api/handicaps', methods=['POST'])
def recalculate_handicaps():
    data = request.get_json(silent=True) or {}
    runners = _runners_from_payload(data)
    race_month = _race_month(data)
    try:
        updated = calculate_handicaps(runners, race_month=race_month)
    except RaceDataError as exc:
        abort(400, description=str(exc))
    finishers = sum(1 for r in updated if r.get('finish_position'))
    current_app.logger.info(
        "handicaps_recalculated runners=%d finishers=%d race_month=%s",
        len(updated), finishers, race_month,
    )
    return {'runners': updated}


@bp.route('/api/handicaps/resolve', methods=['POST'])
def resolve_handicap():
    data = request.get_json(silent=True) or {}
    runner = data.get('runner')
    distance = data.get('distance')
    if not isinstance(runner, dict) or distance not in DISTANCES:
        abort(400, description="Expected 'runner' object and 'distance' of 5km or 10km.")
    if any(not isinstance(runner.get(handicap_field(d)) or '', str) for d in DISTANCES):
        abort(400, description="Runner handicaps must be MM:SS strings.")
    handicap, is_calculated = resolve_handicap_for_distance(runner, distance)
    return {'handicap': handicap, 'is_calculated': is_calculated}


@bp.route('/api/results', methods=['POST'])
def race_results():
    data = request.get_json(silent=True) or {}
    runners = _runners_from_payload(data)
    results = aggregate_results(runners)
    try:
        results['standings'] = {
            distance: compute_championship_standings(runners, distance) for distance in DISTANCES
        }
    except RaceDataError as exc:
        abort(400, description=str(exc))
    return results


@bp.route('/api/export/<kind>', methods=['POST'])
def export_csv(kind):
    if kind not in _EXPORTS:
        abort(404)
    serializer, season_rollover = _EXPORTS[kind]
    data = request.get_json(silent=True) or {}
    runners = _runners_from_payload(data)

    today = datetime.now(ZoneInfo(current_app.config['RACE_TIMEZONE']))
    try:
        year = int(data.get('year') or today.year)
        month = int(data.get('month') or today.month)
        text = serializer(runners)
    except (TypeError, ValueError) as exc:
        abort(400, description=str(exc))

    prefix = current_app.config['CSV_FILENAME_PREFIX']
    try:
        filename = next_race_filename(year, month, season_rollover=season_rollover, prefix=prefix)
    except ValueError as exc:
        abort(400, description=str(exc))
    if kind == 'results':
        filename = f'race-results-{year:04d}-{month:02d}.csv'
    current_app.logger.info("csv_export kind=%s rows=%d filename=%s", kind, len(runners), filename)
    return _csv_response(filename, text)
