#!/usr/bin/env python3
"""
Weekly Predictor Management CLI

Command-line administration for the prediction competition: seeding weeks,
entering results, scoring and inspecting the standings.
"""

import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text

from predictor import create_app, db
from predictor.errors import PredictorError
from predictor.invocation import ScheduledTrusted
from predictor.models import Match, Prediction, User
from predictor.services import (
    audit,
    auto_score,
    leaderboard,
    results,
    scoring,
    season_admin,
    store,
    week_state,
)
from predictor.utils.timezone_utils import format_lockout

app = create_app()

CLI_CONTEXT = ScheduledTrusted(trigger="cli")


def _fail(error):
    click.echo(f"❌ {error}")
    raise SystemExit(1)


@click.group()
def cli():
    """Weekly Predictor Management CLI"""
    pass


# Week Commands
@cli.group()
def week():
    """Week management commands"""
    pass


@week.command("seed")
@click.argument("week_number", type=int)
@click.option("--lockout", required=True, help="Lockout time (ISO-8601)")
@click.option(
    "--fixture",
    "fixtures",
    multiple=True,
    required=True,
    help="Fixture as 'Home|Away' or 'Home|Away|apiFixtureId' (repeat per match)",
)
@with_appcontext
def seed(week_number, lockout, fixtures):
    """Create the matches of a new week"""
    parsed = []
    for raw in fixtures:
        parts = [p.strip() for p in raw.split("|")]
        if len(parts) not in (2, 3):
            _fail(f"Bad fixture '{raw}', expected Home|Away[|apiFixtureId]")
        entry = {"home": parts[0], "away": parts[1]}
        if len(parts) == 3 and parts[2]:
            entry["apiFixtureId"] = parts[2]
        parsed.append(entry)

    try:
        created = season_admin.seed_week(week_number, lockout, parsed)
    except PredictorError as e:
        _fail(e)

    audit.record(
        CLI_CONTEXT,
        "seed_week",
        f"Seeded week {week_number} with {len(created)} matches",
        week=week_number,
    )
    click.echo(f"✅ Seeded week {week_number}:")
    for match in created:
        fixture_ref = f" [fixture {match.api_fixture_id}]" if match.api_fixture_id else ""
        click.echo(f"   #{match.id} {match.home_team} v {match.away_team}{fixture_ref}")


@week.command("set-results")
@click.argument("week_number", type=int)
@click.argument("entries", nargs=-1, required=True)
@with_appcontext
def set_results_cmd(week_number, entries):
    """Record results as MATCH_ID=HOME|DRAW|AWAY pairs"""
    payload = []
    for entry in entries:
        match_id, _, correct = entry.partition("=")
        payload.append({"match_id": match_id, "correct": correct})

    try:
        entered = results.set_results(week_number, payload)
    except PredictorError as e:
        _fail(e)

    if entered.updated:
        audit.record(
            CLI_CONTEXT,
            "set_results",
            f"Set {len(entered.updated)} result(s) for week {week_number}",
            week=week_number,
        )
    click.echo(f"✅ {len(entered.updated)} result(s) set for week {week_number}")
    for skipped in entered.skipped:
        click.echo(f"⚠️  Skipped match {skipped['matchId']}: {skipped['reason']}")


@week.command("score")
@click.argument("week_number", type=int)
@click.option("--force", is_flag=True, help="Score again for users not yet past the week")
@with_appcontext
def score(week_number, force):
    """Score a week"""
    try:
        result = scoring.score_week(week_number, force=force)
    except PredictorError as e:
        _fail(e)

    if result.status == scoring.ALREADY_SCORED:
        click.echo(f"⚠️  {result.message}")
        return
    if result.status == scoring.NO_PREDICTIONS:
        click.echo(f"⚠️  {result.message}")
        return

    audit.record(
        CLI_CONTEXT,
        "score_week",
        f"Scored week {week_number}: {result.users_updated} user(s) updated",
        week=week_number,
    )
    click.echo(
        f"✅ Week {week_number} scored: {result.predictions_updated} prediction(s), "
        f"{result.users_updated} user(s) updated"
    )
    if result.users_skipped:
        click.echo(f"⏭️  {result.users_skipped} user(s) already past week {week_number} were skipped")
    if result.full_house_names:
        click.echo(f"🏆 Full houses: {', '.join(result.full_house_names)}")
    if result.blanks_names:
        click.echo(f"🥚 Blanks: {', '.join(result.blanks_names)}")
    for error in result.errors:
        click.echo(f"❌ {error}")


@week.command("score-range")
@click.argument("start_week", type=int)
@click.argument("end_week", type=int)
@click.option("--force", is_flag=True, help="Score again for users not yet past each week")
@with_appcontext
def score_range_cmd(start_week, end_week, force):
    """Score a run of weeks in order"""
    try:
        outcomes = season_admin.score_range(start_week, end_week, force=force)
    except PredictorError as e:
        _fail(e)

    audit.record(CLI_CONTEXT, "score_range", f"Scored weeks {start_week}-{end_week}")
    for outcome in outcomes:
        line = (
            f"Week {outcome['week']}: {outcome['status']} "
            f"({outcome['usersUpdated']} user(s) updated)"
        )
        if outcome["error"]:
            line += f" - {outcome['error']}"
        click.echo(line)


@week.command("state")
@click.argument("week_number", type=int)
@with_appcontext
def state(week_number):
    """Show a week's state and matches"""
    try:
        snapshot = week_state.get_week_state(week_number)
    except PredictorError as e:
        _fail(e)

    click.echo(f"📅 Week {week_number}: {snapshot.state.value}")
    click.echo(f"   Lockout: {format_lockout(snapshot.lockout)}")
    for match in snapshot.matches:
        click.echo(
            f"   #{match.id} {match.home_team} v {match.away_team}: "
            f"{match.correct_result or 'pending'}"
        )


@cli.command("auto-score")
@with_appcontext
def auto_score_cmd():
    """Run one auto-score tick now"""
    report = auto_score.auto_score_tick(CLI_CONTEXT)
    if report.week is None:
        click.echo(f"ℹ️  {report.message}")
        return

    click.echo(
        f"Week {report.week}: {report.results_set} result(s) set from "
        f"{report.matches_checked} checked, {report.api_calls_used} API call(s)"
    )
    for check in report.log:
        click.echo(f"   {check.label}: {check.status}")
    if report.week_scored:
        click.echo(f"✅ Week {report.week} scored")


# User Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("create")
@click.argument("username")
@click.option("--name", "display_name", help="Display name")
@click.option("--current-week", default=1, type=int, help="First week to score")
@with_appcontext
def create_user(username, display_name, current_week):
    """Create a player"""
    if User.query.filter_by(username=username).first():
        _fail(f"User '{username}' already exists!")
    try:
        created = store.create_user(username, display_name, current_week=current_week)
    except PredictorError as e:
        _fail(e)
    click.echo(f"✅ Created user {created.name} (id {created.id})")


@user.command("list")
@with_appcontext
def list_users():
    """List players"""
    for u in store.list_users():
        click.echo(
            f"{u.id:>4}  {u.name:<24} {u.points:>4} pts  week {u.current_week}"
        )


@user.command("reset")
@click.option("--week", "reset_week", default=1, type=int, help="Week to rewind to")
@with_appcontext
def reset_users_cmd(reset_week):
    """⚠️  Zero every player's totals"""
    if not click.confirm(f"This will zero all totals and rewind to week {reset_week}. Continue?"):
        click.echo("Cancelled.")
        return
    summary = season_admin.reset_users(reset_week)
    audit.record(
        CLI_CONTEXT,
        "reset_users",
        f"Reset {summary['usersReset']} user(s) to week {reset_week}",
        week=reset_week,
    )
    click.echo(f"✅ Reset {summary['usersReset']} user(s) to week {reset_week}")


@cli.command("leaderboard")
@click.option("--limit", default=20, type=int, help="Rows to show")
@with_appcontext
def show_leaderboard(limit):
    """Show the season standings"""
    rows = leaderboard.get_leaderboard()[:limit]
    if not rows:
        click.echo("No players yet.")
        return
    for row in rows:
        click.echo(
            f"{row['position']:>3}. {row['name']:<24} {row['points']:>4} pts  "
            f"FH {row['fullHouses']}  {row['accuracy']}%"
        )


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except Exception as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    try:
        if os.path.exists("migrations"):
            click.echo("❌ Migrations directory already exists!")
            return

        from flask_migrate import init as flask_migrate_init

        flask_migrate_init()
        click.echo("✅ Migrations repository initialized!")
    except Exception as e:
        click.echo(f"❌ Error initializing migrations: {str(e)}")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    try:
        downgrade(revision=revision)
        click.echo(f"✅ Rolled back to {revision}")
    except Exception as e:
        click.echo(f"❌ Error rolling back: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Weekly Predictor Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except Exception as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    overview = week_state.list_weeks()
    if overview["latest"] is not None:
        snapshot = week_state.get_week_state(overview["latest"])
        click.echo(f"📅 Latest week: {overview['latest']} ({snapshot.state.value})")
        click.echo(f"   Lockout: {format_lockout(snapshot.lockout)}")
    else:
        click.echo("⚠️  No weeks seeded yet")

    click.echo(f"👥 Players: {User.query.count()}")
    click.echo(f"⚽ Matches: {Match.query.count()} ({len(overview['weeks'])} weeks)")
    click.echo(f"📝 Predictions: {Prediction.query.count()}")

    key_status = "set" if app.config.get("FOOTBALL_DATA_KEY") else "missing"
    click.echo(f"🔑 Fixture API key: {key_status}")


if __name__ == "__main__":
    with app.app_context():
        cli()
