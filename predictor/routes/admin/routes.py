from flask import current_app, g, jsonify, request

from predictor.auth import admin_required
from predictor.errors import ValidationError
from predictor.routes.admin import bp
from predictor.services import audit, auto_score, results, scoring, season_admin
from predictor.services.scheduler_service import scheduler_service
from predictor.socketio_handlers import get_connection_stats
from predictor.utils.cache_utils import get_cache_stats


def _json_body():
    return request.get_json(silent=True) or {}


def _int_field(data, *names, default=None, required=True):
    for name in names:
        if data.get(name) not in (None, ""):
            try:
                return int(data[name])
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be an integer")
    if required and default is None:
        raise ValidationError(f"{names[0]} required")
    return default


def _flag(value):
    if isinstance(value, str):
        return value.strip().lower() in ("true", "on", "1", "yes")
    return bool(value)


@bp.route("/seed-week", methods=["POST"])
@admin_required
def seed_week():
    """Create the matches of a new week"""
    data = _json_body()
    week = _int_field(data, "week")
    created = season_admin.seed_week(
        week, data.get("lockoutTime", data.get("lockout_time")), data.get("fixtures")
    )
    audit.record(
        g.invocation,
        "seed_week",
        f"Seeded week {week} with {len(created)} matches",
        week=week,
        metadata={"matchIds": [m.id for m in created]},
    )
    return jsonify(
        {"ok": True, "created": len(created), "matches": [m.to_dict() for m in created]}
    )


@bp.route("/set-results", methods=["POST"])
@admin_required
def set_results():
    """Record match results by hand"""
    data = _json_body()
    week = _int_field(data, "week")
    entered = results.set_results(week, data.get("results"))
    if entered.updated:
        audit.record(
            g.invocation,
            "set_results",
            f"Set {len(entered.updated)} result(s) for week {week}",
            week=week,
            metadata={"results": {str(m.id): m.correct_result for m in entered.updated}},
        )
    payload = entered.to_dict()
    payload["ok"] = True
    return jsonify(payload)


@bp.route("/score-week", methods=["POST"])
@admin_required
def score_week():
    """
    Score one week.

    Answers 409 with the summary when the week has already been scored;
    send ``force`` (or set FORCE_SCORE_WEEK) to credit the users a failed
    run left behind.
    """
    data = _json_body()
    week = _int_field(data, "week")
    force = _flag(data.get("force")) or current_app.config.get("FORCE_SCORE_WEEK", False)

    result = scoring.score_week(week, force=force)
    payload = result.to_dict()
    payload["ok"] = result.status != scoring.ALREADY_SCORED

    if result.status == scoring.ALREADY_SCORED:
        return jsonify(payload), 409

    if result.scored:
        audit.record(
            g.invocation,
            "score_week",
            f"Scored week {week}: {result.users_updated} user(s) updated"
            + (" (forced)" if force else ""),
            week=week,
            metadata={
                "predictionsUpdated": result.predictions_updated,
                "usersUpdated": result.users_updated,
                "usersSkipped": result.users_skipped,
                "forced": force,
                "errors": len(result.errors),
            },
        )
    return jsonify(payload)


@bp.route("/score-range", methods=["POST"])
@admin_required
def score_range():
    """Score a run of weeks in order"""
    data = _json_body()
    start_week = _int_field(data, "startWeek", "start_week")
    end_week = _int_field(data, "endWeek", "end_week")
    force = _flag(data.get("force"))

    outcomes = season_admin.score_range(start_week, end_week, force=force)
    audit.record(
        g.invocation,
        "score_range",
        f"Scored weeks {start_week}-{end_week}" + (" (forced)" if force else ""),
        metadata={"results": outcomes},
    )
    return jsonify(
        {"ok": True, "startWeek": start_week, "endWeek": end_week, "results": outcomes}
    )


@bp.route("/reset-users", methods=["POST"])
@admin_required
def reset_users():
    """Zero every user's totals and rewind their current week"""
    data = _json_body()
    reset_week = _int_field(data, "resetWeek", "reset_week", default=1)
    if reset_week < 1:
        raise ValidationError("resetWeek must be at least 1")

    summary = season_admin.reset_users(reset_week)
    audit.record(
        g.invocation,
        "reset_users",
        f"Reset {summary['usersReset']} user(s) to week {reset_week}",
        week=reset_week,
        metadata={"errors": summary["errors"]},
    )
    return jsonify(summary)


@bp.route("/auto-score", methods=["GET", "POST"])
@admin_required
def run_auto_score():
    """Run one automation tick on demand"""
    report = auto_score.auto_score_tick(g.invocation)
    return jsonify(report.to_dict())


@bp.route("/missing-predictions")
@admin_required
def missing_predictions():
    """Users who have not picked, per match"""
    week = _int_field(request.args, "week", required=False)
    return jsonify(season_admin.missing_predictions(week))


@bp.route("/actions")
@admin_required
def admin_actions():
    """Recent entries of the admin audit trail"""
    limit = _int_field(request.args, "limit", default=50)
    actions = audit.recent_actions(
        limit=min(max(limit, 1), 500), action_type=request.args.get("type")
    )
    return jsonify({"actions": [a.to_dict() for a in actions]})


@bp.route("/scheduler")
@admin_required
def scheduler_status():
    """Scheduler state, jobs and run statistics"""
    status = scheduler_service.get_status()
    status["cache"] = get_cache_stats()
    status["socketio"] = get_connection_stats()
    return jsonify(status)


@bp.route("/scheduler/action", methods=["POST"])
@admin_required
def scheduler_action():
    """Start, stop, pause, resume or run the auto-score job"""
    action = (_json_body().get("action") or "").strip().lower()

    if action == "start":
        if scheduler_service.scheduler is None:
            return jsonify({"success": False, "message": "Scheduler is not configured"}), 400
        scheduler_service.start()
        success, message = True, "Scheduler started"
    elif action == "stop":
        scheduler_service.stop()
        success, message = True, "Scheduler stopped"
    elif action == "pause":
        success, message = scheduler_service.pause_job()
    elif action == "resume":
        success, message = scheduler_service.resume_job()
    elif action == "run":
        success, message = scheduler_service.force_run(g.invocation)
    else:
        raise ValidationError("action must be one of start, stop, pause, resume, run")

    audit.record(g.invocation, "scheduler_action", f"Scheduler {action}: {message}")
    return jsonify({"success": success, "message": message}), (200 if success else 400)
