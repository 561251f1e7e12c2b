"""
Store access for matches, predictions and users.

Every write commits on its own so that one failed record never rolls back
its siblings. Database failures surface as StoreError after the session has
been rolled back; unknown ids surface as NotFound.
"""

import json
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from predictor import db
from predictor.errors import NotFound, StoreError
from predictor.models import Match, Prediction, User

logger = logging.getLogger(__name__)

MATCH_FIELDS = {
    "week",
    "home_team",
    "away_team",
    "lockout_time",
    "locked",
    "correct_result",
    "api_fixture_id",
}
PREDICTION_FIELDS = {"pick", "week", "points_awarded"}
USER_FIELDS = {
    "display_name",
    "points",
    "correct_results",
    "incorrect_results",
    "full_houses",
    "blanks",
    "current_week",
}


def resolve_ref(value):
    """
    Normalise a relation reference to a plain integer id.

    Legacy rows store references as a raw id, a one-element list, an
    ``{"id": ...}`` object, or any of those JSON-encoded in a string.
    Returns None for an empty reference and raises ValueError for anything
    else that cannot be read as an id.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        if len(value) != 1:
            raise ValueError(f"Ambiguous reference: {value!r}")
        return resolve_ref(value[0])
    if isinstance(value, dict):
        return resolve_ref(value.get("id"))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            decoded = json.loads(text)
        except ValueError:
            raise ValueError(f"Unreadable reference: {value!r}")
        if isinstance(decoded, str):
            raise ValueError(f"Unreadable reference: {value!r}")
        return resolve_ref(decoded)
    raise ValueError(f"Unreadable reference: {value!r}")


def _commit(description):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"{description} failed: {e}")
        raise StoreError(f"{description} failed")


def _apply(record, fields, allowed):
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    for name, value in fields.items():
        setattr(record, name, value)


def _lookup(model, ref, label, **detail):
    try:
        record_id = resolve_ref(ref)
    except ValueError:
        record_id = None
    record = db.session.get(model, record_id) if record_id is not None else None
    if record is None:
        raise NotFound(f"{label} {ref} not found", **detail)
    return record


# Matches


def list_matches(week=None, ids=None):
    query = Match.query
    if week is not None:
        query = query.filter(Match.week == week)
    if ids is not None:
        query = query.filter(Match.id.in_(list(ids)))
    return query.order_by(Match.week, Match.id).all()


def list_week_numbers():
    rows = db.session.query(Match.week).distinct().order_by(Match.week).all()
    return [row[0] for row in rows]


def get_match(match_id):
    return _lookup(Match, match_id, "Match", matchId=match_id)


def create_match(**fields):
    match = Match()
    _apply(match, fields, MATCH_FIELDS)
    db.session.add(match)
    _commit(f"Creating match {fields.get('home_team')} v {fields.get('away_team')}")
    return match


def update_match(match_id, **fields):
    match = get_match(match_id)
    _apply(match, fields, MATCH_FIELDS)
    _commit(f"Updating match {match.id}")
    return match


# Predictions


def list_predictions(week=None, match_ids=None, user_id=None):
    query = Prediction.query
    if week is not None:
        query = query.filter(Prediction.week == week)
    if match_ids is not None:
        query = query.filter(Prediction.match_id.in_(list(match_ids)))
    if user_id is not None:
        query = query.filter(Prediction.user_id == resolve_ref(user_id))
    return query.order_by(Prediction.id).all()


def update_prediction(prediction_id, **fields):
    prediction = _lookup(Prediction, prediction_id, "Prediction", predictionId=prediction_id)
    _apply(prediction, fields, PREDICTION_FIELDS)
    _commit(f"Updating prediction {prediction.id}")
    return prediction


def upsert_prediction(user_id, match_id, pick, week=None):
    """Create or replace the pick for (user, match)"""
    user_id = resolve_ref(user_id)
    match_id = resolve_ref(match_id)
    if week is None:
        week = get_match(match_id).week

    prediction = Prediction.query.filter_by(user_id=user_id, match_id=match_id).first()
    if prediction is None:
        prediction = Prediction(user_id=user_id, match_id=match_id)
        db.session.add(prediction)
    prediction.pick = pick
    prediction.week = week

    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert for the same key
        db.session.rollback()
        prediction = Prediction.query.filter_by(
            user_id=user_id, match_id=match_id
        ).first()
        if prediction is None:
            raise StoreError(f"Saving prediction for user {user_id} failed")
        prediction.pick = pick
        prediction.week = week
        _commit(f"Saving prediction for user {user_id}")
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Saving prediction for user {user_id} failed: {e}")
        raise StoreError(f"Saving prediction for user {user_id} failed")
    return prediction


# Users


def list_users(ids=None):
    query = User.query
    if ids is not None:
        query = query.filter(User.id.in_(list(ids)))
    return query.order_by(User.id).all()


def get_user(user_id):
    return _lookup(User, user_id, "User", userId=user_id)


def create_user(username, display_name=None, current_week=1):
    user = User(
        username=username,
        display_name=display_name,
        points=0,
        correct_results=0,
        incorrect_results=0,
        full_houses=0,
        blanks=0,
        current_week=current_week,
    )
    db.session.add(user)
    _commit(f"Creating user {username}")
    return user


def update_user(user_id, **fields):
    user = get_user(user_id)
    _apply(user, fields, USER_FIELDS)
    _commit(f"Updating user {user.id}")
    return user
