from datetime import datetime, timezone

from flask import jsonify, request

from predictor import limiter
from predictor.errors import ValidationError
from predictor.routes.api import bp
from predictor.services import leaderboard, picks, store, week_state
from predictor.utils.cache_utils import cached_route


def _int_arg(name):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@bp.route("/health")
def health():
    """Liveness probe"""
    return jsonify({"status": "ok", "time": datetime.now(timezone.utc).isoformat()})


@bp.route("/weeks")
@limiter.limit("120 per minute")
def weeks():
    """All weeks with their lockout and the recommended pick/view weeks"""
    return jsonify(week_state.list_weeks())


@bp.route("/weeks/<int:week>")
@limiter.limit("120 per minute")
def week_detail(week):
    """Matches and state of one week, plus a user's picks when user_id is given"""
    snapshot = week_state.get_week_state(week)
    payload = snapshot.to_dict()
    payload["matches"] = [m.to_dict() for m in snapshot.matches]

    user_id = _int_arg("user_id")
    if user_id is not None:
        store.get_user(user_id)
        payload["picks"] = {
            str(match_id): pick
            for match_id, pick in picks.user_picks(user_id, week).items()
        }
    return jsonify(payload)


@bp.route("/picks", methods=["POST"])
@limiter.limit("30 per minute")
def submit_picks():
    """Save a user's HOME/DRAW/AWAY picks for a week"""
    data = request.get_json(silent=True) or {}
    user_id = data.get("userId", data.get("user_id"))
    week = data.get("week")
    if user_id is None or week is None:
        raise ValidationError("userId, week and picks required")
    try:
        week = int(week)
    except (TypeError, ValueError):
        raise ValidationError("week must be an integer")

    return jsonify(picks.submit_picks(user_id, week, data.get("picks")))


@bp.route("/leaderboard")
@limiter.limit("120 per minute")
@cached_route(timeout=60, key_prefix="leaderboard")
def get_leaderboard():
    """Season standings"""
    return {"rows": leaderboard.get_leaderboard()}


@bp.route("/weeks/<int:week>/table")
@limiter.limit("120 per minute")
def weekly_table(week):
    """Everyone's picks for a locked week"""
    return jsonify(leaderboard.weekly_table(week))


@bp.route("/weeks/<int:week>/distribution")
@limiter.limit("120 per minute")
def pick_distribution(week):
    """Share of HOME/DRAW/AWAY picks per match for a locked week"""
    return jsonify(leaderboard.pick_distribution(week, user_id=_int_arg("user_id")))
