"""
Result acquisition and manual result entry.

``acquire_results`` looks up unresolved matches on the fixtures API one at a
time and records every final score it finds. A match that cannot be resolved
yet is skipped and left for the next run; a failed lookup or write only
affects that match.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from predictor.errors import (
    ConfigurationError,
    FixtureApiError,
    NoSuchWeek,
    RateLimited,
    StoreError,
)
from predictor.models import Outcome
from predictor.services import store
from predictor.socketio_handlers import broadcast_result_set
from predictor.utils.cache_utils import invalidate_standings_cache
from predictor.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

ALREADY_SCORED = "already_scored"
NO_API_ID = "no_api_id"
NOT_FINISHED = "not_finished"
RESULT_SET = "result_set"
API_ERROR = "api_error"
STORE_ERROR = "store_error"


@dataclass
class MatchCheck:
    """Outcome of checking one match"""

    match_id: int
    label: str
    status: str
    result: Optional[str] = None
    fixture_id: Optional[int] = None
    fixture_status: Optional[str] = None
    reason: Optional[str] = None
    rate_limited: bool = False
    error: Optional[str] = None

    @property
    def checked(self):
        """Whether the match was still open when the run looked at it"""
        return self.status != ALREADY_SCORED

    def to_dict(self):
        entry = {
            "matchId": self.match_id,
            "match": self.label,
            "status": self.status,
            "result": self.result,
        }
        optional = {
            "fixtureId": self.fixture_id,
            "fixtureStatus": self.fixture_status,
            "reason": self.reason,
            "error": self.error,
        }
        entry.update({k: v for k, v in optional.items() if v is not None})
        if self.rate_limited:
            entry["rateLimited"] = True
        return entry


def _label(match):
    return f"{match.home_team} v {match.away_team}"


def check_match(match, client):
    """Try to resolve one match from the fixtures API"""
    label = _label(match)

    if match.is_resolved:
        return MatchCheck(match.id, label, ALREADY_SCORED, result=match.result.value)

    fixture_id = match.api_fixture_id
    if not fixture_id:
        return MatchCheck(match.id, label, NO_API_ID)

    try:
        snapshot = client.get_fixture(fixture_id)
    except RateLimited as e:
        logger.warning(f"Fixture {fixture_id} still rate limited after cooldown: {e}")
        return MatchCheck(
            match.id,
            label,
            API_ERROR,
            fixture_id=fixture_id,
            rate_limited=True,
            error=str(e),
        )
    except (FixtureApiError, ConfigurationError) as e:
        logger.error(f"Fixture {fixture_id} lookup failed: {e}")
        return MatchCheck(
            match.id, label, API_ERROR, fixture_id=fixture_id, error=str(e)
        )

    if snapshot is None:
        return MatchCheck(
            match.id,
            label,
            NOT_FINISHED,
            fixture_id=fixture_id,
            reason="fixture_not_found",
        )
    if not snapshot.is_final:
        return MatchCheck(
            match.id,
            label,
            NOT_FINISHED,
            fixture_id=fixture_id,
            fixture_status=snapshot.status,
            reason="status",
        )
    if not snapshot.has_score:
        return MatchCheck(
            match.id,
            label,
            NOT_FINISHED,
            fixture_id=fixture_id,
            fixture_status=snapshot.status,
            reason="no_score_data",
        )

    result = snapshot.result
    try:
        updated = store.update_match(match.id, correct_result=result.value, locked=True)
    except StoreError as e:
        return MatchCheck(
            match.id,
            label,
            STORE_ERROR,
            result=result.value,
            fixture_id=fixture_id,
            error=str(e),
        )

    logger.info(
        f"Result set for {label}: {result.value} "
        f"({snapshot.home_goals}-{snapshot.away_goals})"
    )
    broadcast_result_set(updated)
    return MatchCheck(
        match.id, label, RESULT_SET, result=result.value, fixture_id=fixture_id
    )


def acquire_results(matches, client):
    """
    Check every match and resolve what the fixtures API can resolve.

    Returns one MatchCheck per match, in the order given. Calls are issued
    sequentially; the client spaces them to stay inside the rate budget.
    """
    with PerformanceMonitor(f"Result lookup for {len(matches)} match(es)", log_threshold=1.0):
        checks = [check_match(match, client) for match in matches]
    if any(check.status == RESULT_SET for check in checks):
        invalidate_standings_cache("match results updated")
    return checks


@dataclass
class ManualResults:
    week: int
    updated: list
    skipped: list

    def to_dict(self):
        return {
            "week": self.week,
            "updated": len(self.updated),
            "matches": [m.to_dict() for m in self.updated],
            "skipped": self.skipped,
        }


def set_results(week, results):
    """
    Record results entered by an admin.

    ``results`` is a list of ``{"match_id": ..., "correct": "HOME"|"DRAW"|"AWAY"}``.
    Entries with an unreadable result or a match outside ``week`` are
    skipped and reported. Each recorded match is also locked.
    """
    week_matches = {m.id: m for m in store.list_matches(week=week)}
    if not week_matches:
        raise NoSuchWeek(week)

    updated = []
    skipped = []
    for entry in results or []:
        entry = entry or {}
        raw_id = entry.get("match_id", entry.get("matchId"))
        try:
            match_id = store.resolve_ref(raw_id)
        except ValueError:
            match_id = None
        outcome = Outcome.parse(entry.get("correct", entry.get("result")))

        if outcome is None:
            skipped.append({"matchId": raw_id, "reason": "invalid_result"})
            continue
        if match_id not in week_matches:
            skipped.append({"matchId": raw_id, "reason": "not_in_week"})
            continue

        try:
            match = store.update_match(
                match_id, correct_result=outcome.value, locked=True
            )
        except StoreError as e:
            skipped.append({"matchId": match_id, "reason": "store_error", "error": str(e)})
            continue

        updated.append(match)
        broadcast_result_set(match)

    if updated:
        invalidate_standings_cache(f"week {week} results entered")
    logger.info(
        f"Manual results for week {week}: {len(updated)} set, {len(skipped)} skipped"
    )
    return ManualResults(week=week, updated=updated, skipped=skipped)
