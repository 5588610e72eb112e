import logging
import pytest


ROSTER_CSV = (
    "member_number,full_name,is_financial_member,distance,current_handicap_5k,current_handicap_10k\n"
    "1,Ann,true,10km,,08:00\n"
    "2,Bob,true,10km,,\n"
    "3,Cat,false,5km,05:00,\n"
)


def _race(make_runner):
    return [
        make_runner(1, "10km", h10="08:00", full_name="Ann", finish_time=3_480_000),
        make_runner(2, "10km", h10="05:00", full_name="Bob", finish_time=3_590_000),
        make_runner(3, "5km", h5="05:00", full_name="Cat", status="dnf"),
    ]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "rules": ["5km", "10km"]}


def test_roster_upload_raw_csv(client, caplog):
    caplog.set_level(logging.INFO)
    resp = client.post("/api/roster", data=ROSTER_CSV, content_type="text/csv")
    assert resp.status_code == 200
    body = resp.get_json()
    assert [r["member_number"] for r in body["runners"]] == [1, 2, 3]
    assert body["runners"][0]["current_handicap_10k"] == "08:00"
    assert body["runners"][2]["is_financial_member"] is False
    assert len(body["warnings"]) == 1
    assert body["warnings"][0]["field"] == "runner[1].current_handicap_10k"
    assert any("roster_upload runners=3 warnings=1" in r.getMessage() for r in caplog.records)


def test_roster_upload_json(client):
    resp = client.post("/api/roster", json={"csv": ROSTER_CSV})
    assert resp.status_code == 200
    assert len(resp.get_json()["runners"]) == 3


def test_roster_upload_rejects_missing_headers(client):
    resp = client.post("/api/roster", data="member_number,full_name\n1,Ann\n", content_type="text/csv")
    assert resp.status_code == 400
    assert b"Missing required CSV headers" in resp.data


def test_roster_upload_rejects_empty(client):
    resp = client.post("/api/roster", json={"csv": ""})
    assert resp.status_code == 400
    assert b"CSV file is empty" in resp.data


def test_recalculate_handicaps_with_month(client, make_runner):
    resp = client.post("/api/handicaps", json={"runners": _race(make_runner), "race_month": 2})
    assert resp.status_code == 200
    runners = {r["member_number"]: r for r in resp.get_json()["runners"]}
    assert runners[1]["finish_position"] == 1
    assert runners[1]["new_handicap"] == "10:00"
    assert runners[1]["championship_races_10k"] == "2:1:20:3480"
    assert runners[3]["new_handicap"] == "05:00"
    assert runners[3]["championship_races_5k"] == "2:DNF:1:0"


def test_recalculate_handicaps_with_race_date(client, make_runner):
    # 14:00 UTC on 28 Feb is already 1 March in Sydney.
    resp = client.post(
        "/api/handicaps",
        json={"runners": _race(make_runner), "race_date": "2025-02-28T14:00:00+00:00"},
    )
    assert resp.status_code == 200
    runners = {r["member_number"]: r for r in resp.get_json()["runners"]}
    assert runners[1]["championship_races_10k"] == "3:1:20:3480"


def test_recalculate_handicaps_without_month_leaves_history(client, make_runner):
    resp = client.post("/api/handicaps", json={"runners": _race(make_runner)})
    runners = {r["member_number"]: r for r in resp.get_json()["runners"]}
    assert "championship_races_10k" not in runners[1]


def test_recalculate_handicaps_rejects_bad_input(client, make_runner):
    assert client.post("/api/handicaps", json={"runners": _race(make_runner), "race_month": 13}).status_code == 400
    assert client.post("/api/handicaps", json={"runners": _race(make_runner), "race_date": "soon"}).status_code == 400
    assert client.post("/api/handicaps", json={"runners": "nope"}).status_code == 400
    bad = [make_runner(1, "half", h10="08:00")]
    assert client.post("/api/handicaps", json={"runners": bad}).status_code == 400


def test_resolve_handicap(client, make_runner):
    resp = client.post(
        "/api/handicaps/resolve",
        json={"runner": make_runner(1, "5km", h10="30:00"), "distance": "5km"},
    )
    assert resp.get_json() == {"handicap": "35:45", "is_calculated": True}

    resp = client.post(
        "/api/handicaps/resolve",
        json={"runner": make_runner(1, "5km", h5="02:15"), "distance": "5km"},
    )
    assert resp.get_json() == {"handicap": "02:15", "is_calculated": False}

    assert client.post("/api/handicaps/resolve", json={"distance": "5km"}).status_code == 400


def test_results_include_standings(client, make_runner):
    runners = _race(make_runner)
    runners[0]["championship_points_10k"] = 35
    runners[1]["championship_points_10k"] = 40
    resp = client.post("/api/results", json={"runners": runners})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["tenKm"]["podium"]["first"]["member_number"] == 1
    assert [r["member_number"] for r in body["tenKm"]["all_finishers"]] == [1, 2]
    assert body["fiveKm"]["all_finishers"] == []
    assert [(s["place"], s["member_number"]) for s in body["standings"]["10km"]] == [(1, 2), (2, 1)]
    assert body["standings"]["5km"] == []


def test_export_next_race(client, make_runner):
    runners = [make_runner(1, "10km", h10="08:00", full_name="Ann", new_handicap="10:00")]
    resp = client.post("/api/export/next-race", json={"runners": runners, "year": 2025, "month": 3})
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert 'filename="bushrun-next-race-2025-03.csv"' in resp.headers["Content-Disposition"]
    lines = resp.get_data(as_text=True).split("\n")
    assert lines[0].startswith("member_number,full_name,is_financial_member,distance")
    assert lines[1] == '1,"Ann",true,10km,,10:00,true,true,"","",,'


def test_export_rollover_and_results_filenames(client, make_runner):
    runners = [make_runner(1, "10km", h10="08:00")]
    resp = client.post("/api/export/rollover", json={"runners": runners, "year": 2025, "month": 12})
    assert 'filename="bushrun-next-race-2025-12-rollover.csv"' in resp.headers["Content-Disposition"]
    resp = client.post("/api/export/results", json={"runners": runners, "year": 2025, "month": 2})
    assert 'filename="race-results-2025-02.csv"' in resp.headers["Content-Disposition"]


def test_export_rejects_unknown_kind_and_month(client, make_runner):
    runners = [make_runner(1, "10km", h10="08:00")]
    assert client.post("/api/export/nonsense", json={"runners": runners}).status_code == 404
    resp = client.post("/api/export/next-race", json={"runners": runners, "year": 2025, "month": 13})
    assert resp.status_code == 400


def test_recalculate_handicaps_rejects_non_integer_finish_time(client, make_runner):
    runners = _race(make_runner)
    runners[1]["finish_time"] = "3590000"
    resp = client.post("/api/handicaps", json={"runners": runners, "race_month": 2})
    assert resp.status_code == 400
    assert b"invalid finish time" in resp.data

    runners[1]["finish_time"] = -5
    assert client.post("/api/handicaps", json={"runners": runners}).status_code == 400


def test_recalculate_handicaps_rejects_unknown_status(client, make_runner):
    runners = _race(make_runner)
    runners[2]["status"] = "dns"
    resp = client.post("/api/handicaps", json={"runners": runners})
    assert resp.status_code == 400
    assert b"invalid status" in resp.data


@pytest.mark.parametrize(
    "field, value",
    [
        ("current_handicap_10k", 480),
        ("championship_races_10k", 20),
        ("championship_points_10k", "20"),
        ("championship_points_10k", True),
        ("member_number", True),
    ],
)
def test_payload_field_types_checked(client, make_runner, field, value):
    runners = _race(make_runner)
    runners[0][field] = value
    assert client.post("/api/handicaps", json={"runners": runners}).status_code == 400
    assert client.post("/api/results", json={"runners": runners}).status_code == 400


def test_recalculate_handicaps_rejects_malformed_handicap_text(client, make_runner):
    runners = _race(make_runner)
    runners[0]["current_handicap_10k"] = "8 min"
    assert client.post("/api/handicaps", json={"runners": runners}).status_code == 400


def test_results_reject_malformed_history(client, make_runner):
    runners = _race(make_runner)
    runners[0]["championship_points_10k"] = 20
    runners[0]["championship_races_10k"] = "2:²:20:3480"
    assert client.post("/api/results", json={"runners": runners}).status_code == 400


def test_recalculate_handicaps_rejects_boolean_month(client, make_runner):
    resp = client.post("/api/handicaps", json={"runners": _race(make_runner), "race_month": True})
    assert resp.status_code == 400


def test_resolve_rejects_non_string_handicap(client, make_runner):
    resp = client.post(
        "/api/handicaps/resolve",
        json={"runner": make_runner(1, "5km", h10=1800), "distance": "5km"},
    )
    assert resp.status_code == 400


def test_roster_upload_rejects_non_ascii_history(client):
    text = (
        "member_number,full_name,is_financial_member,distance,current_handicap_5k,championship_races_5k\n"
        "1,Ann,true,5km,05:00,2:²:20:1000\n"
    )
    resp = client.post("/api/roster", data=text.encode("utf-8"), content_type="text/csv; charset=utf-8")
    assert resp.status_code == 400
    assert b"row 2" in resp.data
