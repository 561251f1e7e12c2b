import pytest

from predictor.errors import InvalidPick, NoSuchWeek, NotFound, PicksLocked
from predictor.services import picks, store


def _picks(matches, values):
    return [{"match_id": m.id, "pick": v} for m, v in zip(matches, values)]


def test_submit_before_lockout(make_week, make_user):
    matches = make_week(1)
    user = make_user("alice")

    response = picks.submit_picks(user.id, 1, _picks(matches, ["HOME", "draw", "AWAY", "HOME", "AWAY"]))

    assert response["ok"]
    assert response["saved"] == 5
    assert picks.user_picks(user.id, 1)[matches[1].id] == "DRAW"


def test_resubmitting_replaces_pick(make_week, make_user):
    matches = make_week(1)
    user = make_user("alice")
    picks.submit_picks(user.id, 1, _picks(matches[:1], ["HOME"]))

    picks.submit_picks(user.id, 1, _picks(matches[:1], ["AWAY"]))

    predictions = store.list_predictions(week=1, user_id=user.id)
    assert len(predictions) == 1
    assert predictions[0].pick == "AWAY"


def test_partial_submission_is_allowed(make_week, make_user):
    matches = make_week(1)
    user = make_user("alice")
    response = picks.submit_picks(user.id, 1, _picks(matches[:2], ["HOME", "DRAW"]))
    assert response["saved"] == 2


def test_locked_week_rejects_picks(make_week, make_user, past):
    matches = make_week(1, lockout=past)
    user = make_user("alice")

    with pytest.raises(PicksLocked) as excinfo:
        picks.submit_picks(user.id, 1, _picks(matches, ["HOME"] * 5))

    assert excinfo.value.message == "Deadline passed. Picks locked."
    assert store.list_predictions(week=1) == []


def test_invalid_pick_writes_nothing(make_week, make_user):
    matches = make_week(1)
    user = make_user("alice")

    with pytest.raises(InvalidPick):
        picks.submit_picks(user.id, 1, _picks(matches, ["HOME", "HOME", "1-0", "HOME", "HOME"]))

    assert store.list_predictions(week=1) == []


def test_match_from_another_week(make_week, make_user):
    make_week(1)
    other = make_week(2)
    user = make_user("alice")

    with pytest.raises(InvalidPick):
        picks.submit_picks(user.id, 1, _picks(other[:1], ["HOME"]))


def test_duplicate_match(make_week, make_user):
    matches = make_week(1)
    user = make_user("alice")
    with pytest.raises(InvalidPick):
        picks.submit_picks(user.id, 1, _picks([matches[0], matches[0]], ["HOME", "AWAY"]))


def test_empty_submission(make_week, make_user):
    make_week(1)
    user = make_user("alice")
    with pytest.raises(InvalidPick):
        picks.submit_picks(user.id, 1, [])


def test_unknown_user_and_week(make_week, make_user):
    matches = make_week(1)
    with pytest.raises(NotFound):
        picks.submit_picks(999, 1, _picks(matches, ["HOME"]))
    with pytest.raises(NoSuchWeek):
        picks.submit_picks(make_user("alice").id, 4, _picks(matches, ["HOME"]))
