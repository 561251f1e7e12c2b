"""
Season administration: seeding weeks, rewinding users, scoring a range of
weeks and chasing missing predictions.
"""

import logging

from flask import current_app

from predictor.errors import (
    NoSuchWeek,
    PredictorError,
    StoreError,
    ValidationError,
    WeekAlreadySeeded,
)
from predictor.services import scoring, store
from predictor.utils.cache_utils import invalidate_standings_cache
from predictor.utils.timezone_utils import parse_lockout

logger = logging.getLogger(__name__)


def seed_week(week, lockout_time, fixtures):
    """
    Create the matches of a new week.

    ``fixtures`` must hold exactly MATCHES_PER_WEEK entries of
    ``{"home", "away", "apiFixtureId"?}``. Matches start unlocked and
    without a result.
    """
    expected = current_app.config.get("MATCHES_PER_WEEK", 5)
    if not isinstance(week, int) or isinstance(week, bool) or week < 1:
        raise ValidationError("week must be a positive integer")
    if not isinstance(fixtures, list) or len(fixtures) != expected:
        raise ValidationError(f"week, lockoutTime, and {expected} fixtures required")
    try:
        lockout = parse_lockout(lockout_time)
    except ValueError as e:
        raise ValidationError(f"Invalid lockoutTime: {e}")

    if store.list_matches(week=week):
        raise WeekAlreadySeeded(f"Week {week} already has matches", week=week)

    rows = []
    for index, fixture in enumerate(fixtures, start=1):
        fixture = fixture or {}
        home = (fixture.get("home") or fixture.get("home_team") or "").strip()
        away = (fixture.get("away") or fixture.get("away_team") or "").strip()
        if not home or not away:
            raise ValidationError(f"Fixture {index} needs home and away teams")
        try:
            api_fixture_id = store.resolve_ref(
                fixture.get("apiFixtureId", fixture.get("api_fixture_id"))
            )
        except ValueError:
            raise ValidationError(f"Fixture {index} has an invalid apiFixtureId")
        rows.append((home, away, api_fixture_id))

    created = [
        store.create_match(
            week=week,
            home_team=home,
            away_team=away,
            lockout_time=lockout,
            locked=False,
            correct_result=None,
            api_fixture_id=api_fixture_id,
        )
        for home, away, api_fixture_id in rows
    ]
    invalidate_standings_cache(f"week {week} seeded")
    logger.info(f"Seeded week {week} with {len(created)} matches, lockout {lockout.isoformat()}")
    return created


def reset_users(reset_week=1):
    """
    Zero every user's season totals and rewind ``current_week``.

    Used before re-scoring a season from scratch with ``score_range``.
    """
    users = store.list_users()
    reset = []
    errors = []
    for user in users:
        user_id = user.id
        try:
            store.update_user(
                user_id,
                points=0,
                correct_results=0,
                incorrect_results=0,
                full_houses=0,
                blanks=0,
                current_week=reset_week,
            )
            reset.append(user_id)
        except StoreError as e:
            errors.append({"userId": user_id, "error": str(e)})

    invalidate_standings_cache("users reset")
    logger.warning(f"Reset {len(reset)} user(s) to week {reset_week}")
    return {
        "ok": not errors,
        "usersReset": len(reset),
        "resetWeek": reset_week,
        "errors": errors,
    }


def score_range(start_week, end_week, force=False):
    """Score each week from ``start_week`` to ``end_week`` inclusive, in order"""
    if start_week < 1 or end_week < start_week:
        raise ValidationError("valid startWeek and endWeek required")

    outcomes = []
    for week in range(start_week, end_week + 1):
        try:
            result = scoring.score_week(week, force=force)
        except PredictorError as e:
            logger.warning(f"Scoring week {week} failed: {e}")
            outcomes.append(
                {
                    "week": week,
                    "status": e.code,
                    "predictionsUpdated": 0,
                    "usersUpdated": 0,
                    "usersSkipped": 0,
                    "error": e.message,
                }
            )
            continue

        outcomes.append(
            {
                "week": week,
                "status": result.status,
                "predictionsUpdated": result.predictions_updated,
                "usersUpdated": result.users_updated,
                "usersSkipped": result.users_skipped,
                "error": (
                    f"{len(result.errors)} write error(s)" if result.errors else None
                ),
            }
        )
    return outcomes


def missing_predictions(week=None):
    """For each match (optionally of one week), the users without a pick"""
    users = store.list_users()
    matches = store.list_matches(week=week)
    if week is not None and not matches:
        raise NoSuchWeek(week)

    predicted = {}
    for prediction in store.list_predictions(
        week=week, match_ids=[m.id for m in matches]
    ):
        predicted.setdefault(prediction.match_id, set()).add(prediction.user_id)

    report = []
    for match in matches:
        have = predicted.get(match.id, set())
        missing = [{"id": u.id, "name": u.name} for u in users if u.id not in have]
        fixture = f"{match.home_team} v {match.away_team}"
        summary = (
            f"Match {match.id} (Week {match.week}, {fixture}): "
            f"{len(users) - len(missing)}/{len(users)} predictions"
        )
        if missing:
            summary += (
                f" - missing {len(missing)} (userIds: "
                f"{', '.join(str(u['id']) for u in missing)})"
            )
        report.append(
            {
                "matchId": match.id,
                "week": match.week,
                "fixture": fixture,
                "predictionsCount": len(users) - len(missing),
                "missingCount": len(missing),
                "missingUsers": missing,
                "summary": summary,
            }
        )

    return {
        "ok": True,
        "weekFilter": week,
        "expectedUsers": len(users),
        "matches": report,
        "summaryLines": [entry["summary"] for entry in report],
    }
