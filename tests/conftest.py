from datetime import datetime, timedelta, timezone

import pytest

from predictor import create_app, db
from predictor.services import store
from predictor.utils.fixture_api import FixtureSnapshot

ADMIN_HEADERS = {"X-Admin-Secret": "test-secret"}

WEEK_RESULTS = ["HOME", "DRAW", "AWAY", "HOME", "AWAY"]


@pytest.fixture(name="app")
def app_fixture():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(name="client")
def client_fixture(app):
    return app.test_client()


@pytest.fixture(name="admin_headers")
def admin_headers_fixture():
    return dict(ADMIN_HEADERS)


@pytest.fixture(name="make_week")
def make_week_fixture(app):
    """Create the five matches of a week.

    ``results`` and ``api_ids`` are per-match lists; ``lockout`` defaults to
    tomorrow so the week is open.
    """

    def _make(week=1, lockout=None, results=None, api_ids=None, locked=False):
        lockout = lockout or datetime.now(timezone.utc) + timedelta(days=1)
        matches = []
        for index in range(5):
            matches.append(
                store.create_match(
                    week=week,
                    home_team=f"Home {week}.{index + 1}",
                    away_team=f"Away {week}.{index + 1}",
                    lockout_time=lockout,
                    locked=locked,
                    correct_result=results[index] if results else None,
                    api_fixture_id=api_ids[index] if api_ids else None,
                )
            )
        return matches

    return _make


@pytest.fixture(name="past")
def past_fixture():
    return datetime.now(timezone.utc) - timedelta(hours=1)


@pytest.fixture(name="make_user")
def make_user_fixture(app):
    def _make(username, current_week=1, **totals):
        user = store.create_user(username, current_week=current_week)
        if totals:
            user = store.update_user(user.id, **totals)
        return user

    return _make


@pytest.fixture(name="make_picks")
def make_picks_fixture(app):
    """Write picks straight to the store, skipping the lockout check"""

    def _make(user, matches, picks):
        return [
            store.upsert_prediction(user.id, match.id, pick, week=match.week)
            for match, pick in zip(matches, picks)
            if pick is not None
        ]

    return _make


class FakeClock:
    """Monotonic clock whose sleep just moves time forward"""

    def __init__(self):
        self.now = 1000.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock()


class FakeFixtureClient:
    """Stands in for FixtureApiClient in automation tests"""

    def __init__(self, fixtures=None, errors=None):
        self.fixtures = fixtures or {}
        self.errors = errors or {}
        self.api_calls = 0
        self.requested = []

    def get_fixture(self, fixture_id):
        self.api_calls += 1
        self.requested.append(fixture_id)
        if fixture_id in self.errors:
            raise self.errors[fixture_id]
        return self.fixtures.get(fixture_id)


def finished(fixture_id, home_goals, away_goals):
    return FixtureSnapshot(fixture_id, "FINISHED", home_goals, away_goals)
