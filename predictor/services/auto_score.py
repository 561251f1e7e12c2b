"""
Automation driver.

One tick picks the most recent week that still has a match without a result
and at least one match linked to the fixtures API, looks those results up,
and scores the week once every match is resolved. Only one week is handled
per tick to stay inside the API's rate budget. Running a tick again after a
week has been scored is a no-op because scoring refuses an already-scored
week.
"""

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from predictor.services import audit, results, scoring, store, week_state
from predictor.utils.fixture_api import build_fixture_client
from predictor.utils.logging_config import ContextualLogger
from predictor.utils.performance import timer


@dataclass
class AutoScoreReport:
    source: str
    week: Optional[int] = None
    matches_in_week: int = 0
    matches_checked: int = 0
    results_set: int = 0
    api_calls_used: int = 0
    all_matches_complete: bool = False
    week_scored: bool = False
    week_scoring_detail: Optional[dict] = None
    log: list = field(default_factory=list)
    message: Optional[str] = None

    @property
    def changed(self):
        return bool(self.results_set or self.week_scored)

    @property
    def errors(self):
        failed = [c for c in self.log if c.status in (results.API_ERROR, results.STORE_ERROR)]
        if self.week_scoring_detail:
            failed.extend(self.week_scoring_detail.get("errors") or [])
        return failed

    def to_dict(self):
        payload = {
            "ok": True,
            "source": self.source,
            "week": self.week,
            "matchesInWeek": self.matches_in_week,
            "matchesChecked": self.matches_checked,
            "resultsSet": self.results_set,
            "apiCallsUsed": self.api_calls_used,
            "allMatchesComplete": self.all_matches_complete,
            "weekScored": self.week_scored,
            "weekScoringDetail": self.week_scoring_detail,
            "log": [check.to_dict() for check in self.log],
        }
        if self.message:
            payload["message"] = self.message
        return payload


def find_target_week(matches):
    """
    Most recent week with an unresolved match and at least one match that
    the fixtures API can resolve. Returns (week, matches) or (None, []).
    """
    by_week = {}
    for match in matches:
        by_week.setdefault(match.week, []).append(match)

    for week in sorted(by_week, reverse=True):
        week_matches = by_week[week]
        has_unresolved = any(not m.is_resolved for m in week_matches)
        has_api_ids = any(m.api_fixture_id for m in week_matches)
        if has_unresolved and has_api_ids:
            return week, week_matches
    return None, []


@timer
def auto_score_tick(context, client=None):
    """
    Run one automation tick.

    ``context`` says who triggered the tick (scheduler, CLI or an
    authenticated admin); it is recorded in the audit trail. ``client``
    defaults to a fixtures client built from the app config.
    """
    log = ContextualLogger(__name__, {"source": context.source})

    matches = store.list_matches()
    if not matches:
        log.info("No weeks with matches found")
        return AutoScoreReport(source=context.source, message="No weeks with matches found")

    week, week_matches = find_target_week(matches)
    if week is None:
        log.info("All weeks are fully resolved")
        return AutoScoreReport(
            source=context.source,
            message="All weeks are fully scored. Nothing to do.",
        )

    log = log.bind(week=week)
    if client is None:
        client = build_fixture_client(current_app.config)
    calls_before = client.api_calls

    checks = results.acquire_results(week_matches, client)
    report = AutoScoreReport(
        source=context.source,
        week=week,
        matches_in_week=len(week_matches),
        matches_checked=sum(1 for c in checks if c.checked),
        results_set=sum(1 for c in checks if c.status == results.RESULT_SET),
        api_calls_used=client.api_calls - calls_before,
        log=checks,
    )
    log.info(
        f"Checked {report.matches_checked} match(es), set {report.results_set} result(s) "
        f"using {report.api_calls_used} API call(s)"
    )

    report.all_matches_complete = week_state.matches_resolved(store.list_matches(week=week))
    if report.all_matches_complete:
        scoring_result = scoring.score_week(week)
        report.week_scored = scoring_result.scored
        report.week_scoring_detail = scoring_result.to_dict()
        log.info(f"Week scoring finished with status {scoring_result.status}")

    if report.changed:
        audit.record(
            context,
            "auto_score",
            f"Auto-score week {week}: {report.results_set} result(s) set"
            + (", week scored" if report.week_scored else ""),
            week=week,
            metadata={
                "resultsSet": report.results_set,
                "apiCallsUsed": report.api_calls_used,
                "weekScored": report.week_scored,
            },
        )
    return report
