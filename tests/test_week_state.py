from datetime import datetime, timedelta, timezone

import pytest

from conftest import WEEK_RESULTS
from predictor.errors import AlreadyScored, NoSuchWeek, NotFullyResolved
from predictor.services import scoring, store, week_state
from predictor.services.week_state import WeekState


def test_open_before_lockout(make_week):
    make_week(1)
    snapshot = week_state.get_week_state(1)
    assert snapshot.state == WeekState.OPEN
    assert not snapshot.locked
    assert not snapshot.can_score


def test_locked_after_lockout(make_week, past):
    make_week(1, lockout=past)
    snapshot = week_state.get_week_state(1)
    assert snapshot.state == WeekState.LOCKED
    assert snapshot.locked


def test_locked_flag_locks_before_lockout(make_week):
    matches = make_week(1)
    store.update_match(matches[2].id, locked=True)
    assert week_state.is_week_locked(1)


def test_lockout_is_inclusive(make_week):
    lockout = datetime(2030, 8, 16, 11, 30, tzinfo=timezone.utc)
    make_week(1, lockout=lockout)
    assert not week_state.is_week_locked(1, now=lockout - timedelta(seconds=1))
    assert week_state.is_week_locked(1, now=lockout)


def test_earliest_match_lockout_wins(make_week):
    lockout = datetime(2030, 8, 16, 15, 0, tzinfo=timezone.utc)
    matches = make_week(1, lockout=lockout)
    store.update_match(matches[4].id, lockout_time=lockout - timedelta(hours=3))

    assert week_state.is_week_locked(1, now=lockout - timedelta(hours=1))
    snapshot = week_state.get_week_state(1, now=lockout - timedelta(hours=4))
    assert snapshot.lockout == lockout - timedelta(hours=3)


def test_unknown_week_is_unlocked(app):
    assert week_state.is_week_locked(42) is False


def test_unknown_week_raises(app):
    with pytest.raises(NoSuchWeek):
        week_state.get_week_state(42)
    with pytest.raises(NoSuchWeek):
        week_state.is_fully_resolved(42)


def test_results_set_when_all_resolved(make_week, past):
    make_week(1, lockout=past, results=WEEK_RESULTS)
    snapshot = week_state.get_week_state(1)
    assert snapshot.state == WeekState.RESULTS_SET
    assert snapshot.can_score
    assert week_state.can_score(1)


def test_partially_resolved_is_not_scorable(make_week, past):
    make_week(1, lockout=past, results=["HOME", "DRAW", None, "AWAY", None])
    snapshot = week_state.get_week_state(1)
    assert snapshot.state == WeekState.LOCKED
    assert len(snapshot.unresolved) == 2
    assert not week_state.is_fully_resolved(1)

    with pytest.raises(NotFullyResolved) as excinfo:
        week_state.ensure_scorable(1)
    assert excinfo.value.unresolved == snapshot.unresolved


def test_unrecognised_result_counts_as_unresolved(make_week, past):
    make_week(1, lockout=past, results=["HOME", "DRAW", "AWAY", "HOME", "1-0"])
    assert not week_state.is_fully_resolved(1)


def test_scored_once_a_cursor_moves_past(make_week, make_user, make_picks, past):
    matches = make_week(1, lockout=past, results=WEEK_RESULTS)
    user = make_user("alice")
    make_picks(user, matches, WEEK_RESULTS)

    scoring.score_week(1)

    assert week_state.get_week_state(1).state == WeekState.SCORED
    assert week_state.is_already_scored(1)
    assert not week_state.can_score(1)
    with pytest.raises(AlreadyScored):
        week_state.ensure_scorable(1)
    assert len(week_state.ensure_scorable(1, force=True)) == 5


def test_force_does_not_bypass_missing_results(make_week, make_user, past):
    make_week(1, lockout=past, results=["HOME", None, "AWAY", "HOME", "AWAY"])
    make_user("alice", current_week=2)
    with pytest.raises(NotFullyResolved):
        week_state.ensure_scorable(1, force=True)


def test_list_weeks_recommendations(make_week, past):
    make_week(1, lockout=past)
    make_week(2)

    overview = week_state.list_weeks()

    assert overview["weeks"] == [1, 2]
    assert overview["latest"] == 2
    assert overview["recommendedPickWeek"] == 2
    assert overview["recommendedViewWeek"] == 1
    assert [d["locked"] for d in overview["detail"]] == [True, False]


def test_list_weeks_views_latest_once_locked(make_week, past):
    make_week(1, lockout=past)
    make_week(2, lockout=past)
    assert week_state.list_weeks()["recommendedViewWeek"] == 2


def test_list_weeks_empty(app):
    overview = week_state.list_weeks()
    assert overview["weeks"] == []
    assert overview["latest"] is None
    assert overview["recommendedViewWeek"] is None
