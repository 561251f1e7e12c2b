import pytest

from conftest import FakeFixtureClient, finished
from predictor.errors import FixtureApiError, NoSuchWeek, RateLimited
from predictor.services import results, store
from predictor.utils.fixture_api import FixtureSnapshot


def test_final_score_sets_result_and_locks(make_week, past):
    matches = make_week(1, lockout=past, api_ids=[101, 102, 103, 104, 105])
    client = FakeFixtureClient({101: finished(101, 2, 2)})

    check = results.check_match(matches[0], client)

    assert check.status == results.RESULT_SET
    assert check.result == "DRAW"
    match = store.get_match(matches[0].id)
    assert match.correct_result == "DRAW"
    assert match.locked


def test_already_resolved_match_is_skipped(make_week, past):
    matches = make_week(1, lockout=past, results=["HOME", None, None, None, None], api_ids=[101, 102, 103, 104, 105])
    client = FakeFixtureClient()

    check = results.check_match(matches[0], client)

    assert check.status == results.ALREADY_SCORED
    assert not check.checked
    assert client.api_calls == 0


def test_match_without_fixture_id(make_week, past):
    matches = make_week(1, lockout=past)
    check = results.check_match(matches[0], FakeFixtureClient())
    assert check.status == results.NO_API_ID


@pytest.mark.parametrize(
    "snapshot,reason",
    [
        (None, "fixture_not_found"),
        (FixtureSnapshot(101, "IN_PLAY", 1, 0), "status"),
        (FixtureSnapshot(101, "FINISHED"), "no_score_data"),
    ],
)
def test_unfinished_fixtures_leave_match_open(make_week, past, snapshot, reason):
    matches = make_week(1, lockout=past, api_ids=[101, 102, 103, 104, 105])
    client = FakeFixtureClient({101: snapshot} if snapshot else {})

    check = results.check_match(matches[0], client)

    assert check.status == results.NOT_FINISHED
    assert check.reason == reason
    assert store.get_match(matches[0].id).correct_result is None


def test_api_failures_are_reported_per_match(make_week, past):
    matches = make_week(1, lockout=past, api_ids=[101, 102, 103, 104, 105])
    client = FakeFixtureClient(
        {103: finished(103, 0, 1), 104: finished(104, 3, 1), 105: finished(105, 1, 1)},
        errors={
            101: RateLimited("still throttled"),
            102: FixtureApiError("Fixture API 502 for fixture 102"),
        },
    )

    checks = results.acquire_results(matches, client)

    assert [c.status for c in checks] == [
        results.API_ERROR,
        results.API_ERROR,
        results.RESULT_SET,
        results.RESULT_SET,
        results.RESULT_SET,
    ]
    assert checks[0].rate_limited
    assert checks[0].to_dict()["rateLimited"] is True
    assert "rateLimited" not in checks[1].to_dict()
    assert [m.correct_result for m in store.list_matches(week=1)] == [
        None,
        None,
        "AWAY",
        "HOME",
        "DRAW",
    ]


def test_manual_results(make_week):
    matches = make_week(1)
    other = make_week(2)

    entered = results.set_results(
        1,
        [
            {"match_id": matches[0].id, "correct": "home"},
            {"match_id": str(matches[1].id), "correct": "DRAW"},
            {"match_id": matches[2].id, "correct": "1-0"},
            {"match_id": other[0].id, "correct": "AWAY"},
        ],
    )

    assert [m.id for m in entered.updated] == [matches[0].id, matches[1].id]
    assert [s["reason"] for s in entered.skipped] == ["invalid_result", "not_in_week"]
    assert store.get_match(matches[0].id).correct_result == "HOME"
    assert store.get_match(matches[0].id).locked
    assert store.get_match(other[0].id).correct_result is None


def test_manual_results_for_unknown_week(app):
    with pytest.raises(NoSuchWeek):
        results.set_results(3, [{"match_id": 1, "correct": "HOME"}])
