import pytest

from conftest import WEEK_RESULTS
from predictor import db
from predictor.errors import NoSuchWeek, NotFullyResolved, StoreError
from predictor.models import User
from predictor.services import scoring, store


def _reload(user):
    db.session.expire_all()
    return db.session.get(User, user.id)


@pytest.fixture
def scored_week(make_week, make_user, make_picks, past):
    matches = make_week(1, lockout=past, results=WEEK_RESULTS)
    users = {
        "perfect": make_user("perfect"),
        "two": make_user("two"),
        "blank": make_user("blank"),
        "partial": make_user("partial"),
    }
    make_picks(users["perfect"], matches, WEEK_RESULTS)
    make_picks(users["two"], matches, ["HOME", "DRAW", "HOME", "AWAY", "DRAW"])
    make_picks(users["blank"], matches, ["AWAY", "HOME", "HOME", "DRAW", "HOME"])
    make_picks(users["partial"], matches, ["HOME", "DRAW", "AWAY", None, None])
    return matches, users


@pytest.mark.parametrize(
    "correct,expected",
    [(5, 10), (4, 4), (3, 3), (0, 0)],
)
def test_points_for_week(correct, expected):
    assert scoring.points_for_week(correct, 5, bonus=5) == expected


def test_prediction_points():
    assert scoring.prediction_points("HOME", "HOME") == 1
    assert scoring.prediction_points("home", "HOME") == 1
    assert scoring.prediction_points("DRAW", "HOME") == 0
    assert scoring.prediction_points("HOME", None) == 0


def test_score_week_updates_totals(scored_week):
    matches, users = scored_week

    result = scoring.score_week(1)

    assert result.status == scoring.SCORED
    assert result.users_updated == 4
    assert result.predictions_updated == 18
    assert result.full_house_names == ["perfect"]
    assert result.blanks_names == ["blank"]
    assert result.errors == []

    perfect = _reload(users["perfect"])
    assert perfect.points == 10
    assert perfect.correct_results == 5
    assert perfect.incorrect_results == 0
    assert perfect.full_houses == 1
    assert perfect.current_week == 2

    two = _reload(users["two"])
    assert two.points == 2
    assert two.correct_results == 2
    assert two.incorrect_results == 3
    assert two.full_houses == 0

    blank = _reload(users["blank"])
    assert blank.points == 0
    assert blank.blanks == 1
    assert blank.incorrect_results == 5


def test_partial_picks_never_make_a_full_house(scored_week):
    matches, users = scored_week

    result = scoring.score_week(1)

    partial = _reload(users["partial"])
    assert partial.points == 3
    assert partial.correct_results == 3
    assert partial.incorrect_results == 0
    assert partial.full_houses == 0
    assert "partial" not in result.full_house_names


def test_points_awarded_per_prediction(scored_week):
    matches, users = scored_week
    scoring.score_week(1)

    awarded = {
        p.match_id: p.points_awarded
        for p in store.list_predictions(week=1, user_id=users["two"].id)
    }
    assert [awarded[m.id] for m in matches] == [1, 1, 0, 0, 0]


def test_second_run_is_a_no_op(scored_week):
    matches, users = scored_week
    scoring.score_week(1)

    again = scoring.score_week(1)

    assert again.status == scoring.ALREADY_SCORED
    assert again.users_updated == 0
    assert again.predictions_updated == 0
    assert _reload(users["perfect"]).points == 10


def test_force_skips_users_already_credited(scored_week):
    matches, users = scored_week
    scoring.score_week(1)

    forced = scoring.score_week(1, force=True)

    assert forced.status == scoring.SCORED
    assert forced.forced
    assert forced.predictions_updated == 0
    assert forced.users_updated == 0
    assert forced.users_skipped == 4
    assert {d.status for d in forced.detail} == {"skipped"}
    assert forced.full_house_names == []
    assert _reload(users["perfect"]).points == 10
    assert _reload(users["perfect"]).full_houses == 1
    assert _reload(users["perfect"]).current_week == 2


def test_cursor_never_moves_backwards(make_week, make_user, make_picks, past):
    matches = make_week(1, lockout=past, results=WEEK_RESULTS)
    ahead = make_user("ahead", current_week=4)
    make_picks(ahead, matches, WEEK_RESULTS)

    result = scoring.score_week(1, force=True)

    assert result.users_skipped == 1
    assert _reload(ahead).current_week == 4
    assert _reload(ahead).points == 0


def test_users_without_predictions_are_untouched(scored_week, make_user):
    idle = make_user("idle")
    scoring.score_week(1)

    idle = _reload(idle)
    assert idle.current_week == 1
    assert idle.points == 0
    assert idle.blanks == 0


def test_unresolved_week_is_refused(make_week, make_user, make_picks, past):
    matches = make_week(1, lockout=past, results=["HOME", "DRAW", None, "HOME", "AWAY"])
    user = make_user("alice")
    make_picks(user, matches, WEEK_RESULTS)

    with pytest.raises(NotFullyResolved):
        scoring.score_week(1)
    assert _reload(user).points == 0


def test_unknown_week_is_refused(app):
    with pytest.raises(NoSuchWeek):
        scoring.score_week(9)


def test_week_without_predictions(make_week, make_user, past):
    make_week(1, lockout=past, results=WEEK_RESULTS)
    make_user("alice")

    result = scoring.score_week(1)

    assert result.status == scoring.NO_PREDICTIONS
    assert result.users_updated == 0


def test_user_write_failure_is_isolated(scored_week, monkeypatch):
    matches, users = scored_week
    failing_id = users["two"].id
    update_user = store.update_user

    def flaky_update(user_id, **fields):
        if user_id == failing_id:
            raise StoreError(f"Updating user {user_id} failed")
        return update_user(user_id, **fields)

    monkeypatch.setattr(store, "update_user", flaky_update)

    result = scoring.score_week(1)

    assert result.status == scoring.SCORED
    assert result.users_updated == 3
    assert result.errors == [{"userId": failing_id, "error": f"Updating user {failing_id} failed"}]
    detail = {d.user_id: d for d in result.detail}
    assert detail[failing_id].status == "error"
    assert _reload(users["perfect"]).points == 10
    assert _reload(users["two"]).points == 0


def test_result_to_dict(scored_week):
    payload = scoring.score_week(1).to_dict()
    assert payload["status"] == "scored"
    assert payload["usersUpdated"] == 4
    assert payload["fullHouseNames"] == ["perfect"]
    assert {d["name"] for d in payload["perUserDetail"]} == {
        "perfect",
        "two",
        "blank",
        "partial",
    }


def _fail_once_for(monkeypatch, user_id):
    """Make the next commit for ``user_id`` fail and roll back, then let writes through"""
    commit = store._commit
    failures = []

    def flaky_commit(description):
        if description == f"Updating user {user_id}" and not failures:
            failures.append(description)
            db.session.rollback()
            raise StoreError(f"{description} failed")
        return commit(description)

    monkeypatch.setattr(store, "_commit", flaky_commit)
    return failures


def test_failed_user_write_stores_neither_totals_nor_cursor(
    make_week, make_user, make_picks, past, monkeypatch
):
    matches = make_week(1, lockout=past, results=WEEK_RESULTS)
    alice = make_user("alice")
    alice_id = alice.id
    make_picks(alice, matches, WEEK_RESULTS)
    failures = _fail_once_for(monkeypatch, alice_id)

    writes = []
    update_user = store.update_user

    def recording_update(user_id, **fields):
        writes.append(set(fields))
        return update_user(user_id, **fields)

    monkeypatch.setattr(store, "update_user", recording_update)

    first = scoring.score_week(1)

    assert failures
    assert len(writes) == 1
    assert {"points", "full_houses", "current_week"} <= writes[0]
    assert first.users_updated == 0
    alice = _reload(alice)
    assert alice.points == 0
    assert alice.full_houses == 0
    assert alice.current_week == 1

    second = scoring.score_week(1)

    assert second.status == scoring.SCORED
    assert second.users_updated == 1
    alice = _reload(alice)
    assert alice.points == 10
    assert alice.full_houses == 1
    assert alice.current_week == 2


def test_forced_rerun_finishes_a_partial_run(make_week, make_user, make_picks, past, monkeypatch):
    matches = make_week(1, lockout=past, results=WEEK_RESULTS)
    alice = make_user("alice")
    bob = make_user("bob")
    alice_id, bob_id = alice.id, bob.id
    make_picks(alice, matches, WEEK_RESULTS)
    make_picks(bob, matches, WEEK_RESULTS)
    _fail_once_for(monkeypatch, bob_id)

    first = scoring.score_week(1)
    assert first.users_updated == 1
    assert first.errors == [{"userId": bob_id, "error": f"Updating user {bob_id} failed"}]

    assert scoring.score_week(1).status == scoring.ALREADY_SCORED
    assert _reload(bob).points == 0

    retry = scoring.score_week(1, force=True)

    assert retry.users_updated == 1
    assert retry.users_skipped == 1
    assert retry.full_house_names == ["bob"]
    assert {d.user_id: d.status for d in retry.detail} == {
        alice_id: "skipped",
        bob_id: "applied",
    }
    assert retry.to_dict()["usersSkipped"] == 1
    assert _reload(alice).points == 10
    assert _reload(alice).full_houses == 1
    assert _reload(bob).points == 10
    assert _reload(bob).current_week == 2
