import logging

from predictor.errors import InvalidPick, NoSuchWeek, PicksLocked
from predictor.models import Outcome
from predictor.services import store, week_state

logger = logging.getLogger(__name__)


def _validate(picks, week_match_ids):
    """Turn the submitted picks into (match_id, Outcome) pairs or raise InvalidPick"""
    if not isinstance(picks, list) or not picks:
        raise InvalidPick("At least one pick is required")

    validated = {}
    for entry in picks:
        if not isinstance(entry, dict):
            raise InvalidPick("Each pick must be an object with match_id and pick")
        raw_id = entry.get("match_id", entry.get("matchId"))
        try:
            match_id = store.resolve_ref(raw_id)
        except ValueError:
            match_id = None
        if match_id not in week_match_ids:
            raise InvalidPick(f"Match {raw_id} is not part of this week", matchId=raw_id)
        if match_id in validated:
            raise InvalidPick(f"Match {match_id} picked more than once", matchId=match_id)

        outcome = Outcome.parse(entry.get("pick"))
        if outcome is None:
            raise InvalidPick("Pick must be HOME/DRAW/AWAY", matchId=match_id)
        validated[match_id] = outcome
    return validated


def submit_picks(user_id, week, picks, now=None):
    """
    Save a user's picks for ``week``.

    Every pick is validated before anything is written, so a bad entry
    leaves the user's existing picks untouched. Resubmitting a match
    replaces the earlier pick. Submitting fewer picks than the week has
    matches is allowed.
    """
    user = store.get_user(user_id)

    matches = store.list_matches(week=week)
    if not matches:
        raise NoSuchWeek(week)
    if week_state.matches_locked(matches, now):
        raise PicksLocked("Deadline passed. Picks locked.", week=week)

    validated = _validate(picks, {m.id for m in matches})

    saved = [
        store.upsert_prediction(user.id, match_id, outcome.value, week=week)
        for match_id, outcome in validated.items()
    ]
    logger.info(f"Saved {len(saved)} pick(s) for user {user.id} in week {week}")
    return {
        "ok": True,
        "week": week,
        "saved": len(saved),
        "predictions": [p.to_dict() for p in saved],
    }


def user_picks(user_id, week):
    """The user's current picks for a week, keyed by match id"""
    return {
        p.match_id: p.pick
        for p in store.list_predictions(week=week, user_id=user_id)
    }
