import pytest

from conftest import WEEK_RESULTS, FakeFixtureClient, finished
from predictor import db
from predictor.models import AdminAction, Match, User
from predictor.services import auto_score
from predictor.services.scheduler_service import SchedulerService, scheduler_service


def seed_payload(week=1, count=5, lockout="2030-08-16T11:30:00Z"):
    return {
        "week": week,
        "lockoutTime": lockout,
        "fixtures": [
            {"home": f"Home {i}", "away": f"Away {i}", "apiFixtureId": 900 + i}
            for i in range(count)
        ],
    }


@pytest.mark.parametrize("headers", [{}, {"X-Admin-Secret": "wrong"}])
def test_admin_requires_secret(client, headers):
    response = client.post("/admin/score-week", json={"week": 1}, headers=headers)
    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorised"}


def test_admin_refused_without_configured_secret(app, client, admin_headers):
    app.config["ADMIN_SECRET"] = None
    response = client.get("/admin/actions", headers=admin_headers)
    assert response.status_code == 503


def test_seed_week(client, admin_headers):
    response = client.post("/admin/seed-week", json=seed_payload(), headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data["created"] == 5
    assert data["matches"][0]["apiFixtureId"] == 900
    assert data["matches"][0]["lockoutTime"].startswith("2030-08-16T11:30")
    assert Match.query.filter_by(week=1).count() == 5


def test_seed_week_needs_five_fixtures(client, admin_headers):
    response = client.post("/admin/seed-week", json=seed_payload(count=4), headers=admin_headers)
    assert response.status_code == 400
    assert Match.query.count() == 0


def test_seed_week_twice(client, admin_headers):
    client.post("/admin/seed-week", json=seed_payload(), headers=admin_headers)
    response = client.post("/admin/seed-week", json=seed_payload(), headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["code"] == "WeekAlreadySeeded"


def test_seed_week_bad_lockout(client, admin_headers):
    response = client.post(
        "/admin/seed-week", json=seed_payload(lockout="next friday"), headers=admin_headers
    )
    assert response.status_code == 400


def test_results_then_scoring(client, admin_headers, make_week, make_user, make_picks, past):
    matches = make_week(1, lockout=past)
    alice = make_user("alice")
    make_picks(alice, matches, WEEK_RESULTS)

    response = client.post(
        "/admin/set-results",
        json={
            "week": 1,
            "results": [{"match_id": m.id, "correct": r} for m, r in zip(matches, WEEK_RESULTS)],
        },
        headers=admin_headers,
    )
    assert response.get_json()["updated"] == 5

    response = client.post("/admin/score-week", json={"week": 1}, headers=admin_headers)
    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "scored"
    assert data["fullHouseNames"] == ["alice"]

    response = client.post("/admin/score-week", json={"week": 1}, headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["status"] == "already_scored"

    db.session.expire_all()
    assert db.session.get(User, alice.id).points == 10

    actions = client.get("/admin/actions", headers=admin_headers).get_json()["actions"]
    assert [a["action_type"] for a in actions] == ["score_week", "set_results"]
    assert {a["source"] for a in actions} == {"manual"}


def test_score_week_with_missing_results(client, admin_headers, make_week, past):
    make_week(1, lockout=past, results=["HOME", None, "AWAY", "HOME", "AWAY"])
    response = client.post("/admin/score-week", json={"week": 1}, headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["code"] == "NotFullyResolved"


def test_score_week_requires_week(client, admin_headers):
    response = client.post("/admin/score-week", json={}, headers=admin_headers)
    assert response.status_code == 400


def test_reset_and_score_range(client, admin_headers, make_week, make_user, make_picks, past):
    week1 = make_week(1, lockout=past, results=WEEK_RESULTS)
    week2 = make_week(2, lockout=past, results=WEEK_RESULTS)
    make_week(3, lockout=past)
    alice = make_user("alice")
    make_picks(alice, week1, WEEK_RESULTS)
    make_picks(alice, week2, ["HOME"] * 5)

    data = client.post(
        "/admin/score-range", json={"startWeek": 1, "endWeek": 3}, headers=admin_headers
    ).get_json()
    assert [r["status"] for r in data["results"]] == ["scored", "scored", "NotFullyResolved"]
    db.session.expire_all()
    assert db.session.get(User, alice.id).points == 12

    data = client.post("/admin/reset-users", json={}, headers=admin_headers).get_json()
    assert data["usersReset"] == 1
    db.session.expire_all()
    assert db.session.get(User, alice.id).points == 0
    assert db.session.get(User, alice.id).current_week == 1

    client.post("/admin/score-range", json={"startWeek": 1, "endWeek": 2}, headers=admin_headers)
    db.session.expire_all()
    assert db.session.get(User, alice.id).points == 12
    assert db.session.get(User, alice.id).current_week == 3


def test_missing_predictions(client, admin_headers, make_week, make_user, make_picks):
    matches = make_week(1)
    alice = make_user("alice")
    bob = make_user("bob")
    make_picks(alice, matches, WEEK_RESULTS)

    data = client.get("/admin/missing-predictions?week=1", headers=admin_headers).get_json()

    assert data["expectedUsers"] == 2
    assert data["matches"][0]["missingUsers"] == [{"id": bob.id, "name": "bob"}]
    assert len(data["summaryLines"]) == 5


def test_auto_score_endpoint(client, admin_headers, make_week, past, monkeypatch):
    make_week(5, lockout=past, api_ids=[501, 502, 503, 504, 505])
    fake = FakeFixtureClient({501: finished(501, 1, 0)})
    monkeypatch.setattr(auto_score, "build_fixture_client", lambda config: fake)

    response = client.post("/admin/auto-score", headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data["source"] == "manual"
    assert data["week"] == 5
    assert data["resultsSet"] == 1
    assert data["apiCallsUsed"] == 5
    assert data["weekScored"] is False


def test_scheduler_status(client, admin_headers):
    data = client.get("/admin/scheduler", headers=admin_headers).get_json()
    assert "is_running" in data
    assert "stats" in data


def test_scheduler_unknown_action(client, admin_headers):
    response = client.post(
        "/admin/scheduler/action", json={"action": "explode"}, headers=admin_headers
    )
    assert response.status_code == 400


def test_scheduler_run_action_is_recorded_as_manual(
    app, client, admin_headers, make_week, past, monkeypatch
):
    make_week(4, lockout=past, api_ids=[401, 402, 403, 404, 405])
    fake = FakeFixtureClient({401: finished(401, 2, 2)})
    monkeypatch.setattr(auto_score, "build_fixture_client", lambda config: fake)
    monkeypatch.setattr(scheduler_service, "app", app)
    monkeypatch.setattr(scheduler_service, "run_stats", SchedulerService._empty_stats())

    response = client.post(
        "/admin/scheduler/action", json={"action": "run"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    db.session.expire_all()
    action = AdminAction.query.filter_by(action_type="auto_score").one()
    assert action.source == "manual"
    assert action.week == 4
