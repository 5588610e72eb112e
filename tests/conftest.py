import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from bushrun import create_app


@pytest.fixture()
def make_runner():
    """Build a runner record with the defaults a roster import would give."""

    def _make(member_number, distance="10km", h5=None, h10=None, **fields):
        runner = {
            "member_number": member_number,
            "full_name": fields.pop("full_name", f"Runner {member_number}"),
            "is_financial_member": True,
            "distance": distance,
            "checked_in": True,
        }
        if h5 is not None:
            runner["current_handicap_5k"] = h5
        if h10 is not None:
            runner["current_handicap_10k"] = h10
        runner.update(fields)
        return runner

    return _make


@pytest.fixture()
def app():
    app = create_app({"TESTING": True, "RACE_TIMEZONE": "Australia/Sydney"})
    yield app


@pytest.fixture()
def client(app):
    with app.test_client() as c:
        yield c
