"""
Scoring Engine for the weekly predictor

Scoring a week awards one point per correct prediction, plus a flat bonus
when a user gets every match of the week right (a "full house"). Deltas are
added to the users' season totals and each participating user's
``current_week`` cursor moves past the week, which is what keeps a second
run from scoring the same week twice.

Writes are issued one record at a time. A failed prediction or user write is
reported in the result and the run carries on with the next record.
"""

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app, has_app_context

from predictor.errors import AlreadyScored, StoreError
from predictor.models import Outcome
from predictor.services import store, week_state
from predictor.socketio_handlers import broadcast_week_scored
from predictor.utils.cache_utils import invalidate_standings_cache
from predictor.utils.logging_config import ContextualLogger
from predictor.utils.performance import timer

SCORED = "scored"
ALREADY_SCORED = "already_scored"
NO_PREDICTIONS = "no_predictions"

DEFAULT_FULL_HOUSE_BONUS = 5


def prediction_points(pick, result):
    """
    Points for a single prediction.

    Returns:
        1 when the pick matches the match result, otherwise 0
    """
    if result is None:
        return 0
    return 1 if Outcome.parse(pick) == Outcome.parse(result) else 0


def points_for_week(weekly_correct, matches_in_week, bonus=DEFAULT_FULL_HOUSE_BONUS):
    """Weekly points: the correct count plus the bonus for a full house"""
    if matches_in_week and weekly_correct == matches_in_week:
        return weekly_correct + bonus
    return weekly_correct


def _full_house_bonus():
    if has_app_context():
        return current_app.config.get("FULL_HOUSE_BONUS", DEFAULT_FULL_HOUSE_BONUS)
    return DEFAULT_FULL_HOUSE_BONUS


@dataclass
class UserWeekScore:
    user_id: int
    name: str
    predictions: int
    weekly_correct: int
    points_added: int
    full_house: bool
    blank: bool
    status: str = "applied"
    error: Optional[str] = None

    @property
    def applied(self):
        return self.status == "applied"

    def to_dict(self):
        entry = {
            "userId": self.user_id,
            "name": self.name,
            "predictions": self.predictions,
            "weeklyCorrect": self.weekly_correct,
            "pointsAdded": self.points_added,
            "fullHouse": self.full_house,
            "blank": self.blank,
            "status": self.status,
        }
        if self.error:
            entry["error"] = self.error
        return entry


@dataclass
class ScoringResult:
    week: int
    status: str
    forced: bool = False
    predictions_updated: int = 0
    users_updated: int = 0
    users_skipped: int = 0
    full_house_names: list = field(default_factory=list)
    blanks_names: list = field(default_factory=list)
    detail: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    message: Optional[str] = None

    @property
    def scored(self):
        return self.status == SCORED

    @property
    def has_errors(self):
        return bool(self.errors)

    def to_dict(self):
        return {
            "week": self.week,
            "status": self.status,
            "scored": self.scored,
            "forced": self.forced,
            "predictionsUpdated": self.predictions_updated,
            "usersUpdated": self.users_updated,
            "usersSkipped": self.users_skipped,
            "fullHouseNames": list(self.full_house_names),
            "blanksNames": list(self.blanks_names),
            "perUserDetail": [d.to_dict() for d in self.detail],
            "errors": list(self.errors),
            "message": self.message,
        }


def _score_predictions(predictions, results_by_match, result, log):
    """Write per-prediction points and tally (count, correct) per user"""
    tallies = {}
    for prediction in predictions:
        points = prediction_points(prediction.pick, results_by_match.get(prediction.match_id))
        tally = tallies.setdefault(prediction.user_id, [0, 0])
        tally[0] += 1
        tally[1] += points

        if prediction.points_awarded == points:
            continue
        prediction_id = prediction.id
        try:
            store.update_prediction(prediction_id, points_awarded=points)
            result.predictions_updated += 1
        except StoreError as e:
            log.error(f"Could not store points for prediction {prediction_id}: {e}")
            result.errors.append({"predictionId": prediction_id, "error": str(e)})
    return tallies


def _apply_user_deltas(user, score, week):
    """Add the week's deltas to the user and move the cursor past the week.

    Totals and cursor go out in a single write so a failure leaves neither
    stored and the user can be scored again.
    """
    store.update_user(
        user.id,
        points=(user.points or 0) + score.points_added,
        correct_results=(user.correct_results or 0) + score.weekly_correct,
        incorrect_results=(user.incorrect_results or 0)
        + (score.predictions - score.weekly_correct),
        full_houses=(user.full_houses or 0) + (1 if score.full_house else 0),
        blanks=(user.blanks or 0) + (1 if score.blank else 0),
        current_week=max(user.current_week or 1, week + 1),
    )


@timer
def score_week(week, force=False):
    """
    Score ``week`` and add the results to every participating user's totals.

    Raises NoSuchWeek for a week without matches and NotFullyResolved while
    any match lacks a result. A week that has already been scored returns a
    result with status ``already_scored`` unless ``force`` is set.

    Users whose cursor is already past the week are reported as ``skipped``
    and left alone, so a forced run finishes a partially failed one without
    paying anyone twice.
    """
    log = ContextualLogger(__name__, {"week": week})

    try:
        matches = week_state.ensure_scorable(week, force=force)
    except AlreadyScored as e:
        log.info("Week already scored, nothing to do")
        return ScoringResult(week=week, status=ALREADY_SCORED, message=str(e))

    if force:
        log.warning("Forced scoring: only users not yet moved past the week are credited")

    results_by_match = {m.id: m.result for m in matches}
    predictions = store.list_predictions(match_ids=list(results_by_match))
    if not predictions:
        log.info("No predictions for this week")
        return ScoringResult(
            week=week,
            status=NO_PREDICTIONS,
            forced=force,
            message=f"No predictions found for week {week}",
        )

    result = ScoringResult(week=week, status=SCORED, forced=force)
    tallies = _score_predictions(predictions, results_by_match, result, log)

    bonus = _full_house_bonus()
    users = {u.id: u for u in store.list_users(ids=list(tallies))}
    for user_id in sorted(tallies):
        count, correct = tallies[user_id]
        user = users.get(user_id)
        if user is None:
            result.errors.append({"userId": user_id, "error": "user not found"})
            continue

        full_house = correct == len(matches)
        score = UserWeekScore(
            user_id=user.id,
            name=user.name,
            predictions=count,
            weekly_correct=correct,
            points_added=points_for_week(correct, len(matches), bonus),
            full_house=full_house,
            blank=correct == 0,
        )
        if (user.current_week or 1) > week:
            score.status = "skipped"
            result.detail.append(score)
            result.users_skipped += 1
            continue
        try:
            _apply_user_deltas(user, score, week)
        except StoreError as e:
            log.error(f"Could not update totals for user {user_id}: {e}")
            score.status = "error"
            score.error = str(e)
            result.errors.append({"userId": user_id, "error": str(e)})

        result.detail.append(score)
        if not score.applied:
            continue
        result.users_updated += 1
        if score.full_house:
            result.full_house_names.append(score.name)
        if score.blank:
            result.blanks_names.append(score.name)

    log.info(
        f"Scored: {result.predictions_updated} prediction(s) updated, "
        f"{result.users_updated} user(s) updated, {result.users_skipped} skipped, "
        f"{len(result.errors)} error(s)"
    )

    if result.predictions_updated or result.users_updated:
        invalidate_standings_cache(f"week {week} scored")
    if result.users_updated:
        broadcast_week_scored(result)
    return result
