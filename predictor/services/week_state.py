"""
Week state machine.

A week is not stored; it is derived from its matches and from the users'
``current_week`` cursors:

    OPEN -> LOCKED -> RESULTS_SET -> SCORED

Everything here is a read. Nothing in this module writes to the store.
"""

import enum
import logging
from dataclasses import dataclass, field

from predictor.errors import AlreadyScored, NoSuchWeek, NotFullyResolved
from predictor.services import store
from predictor.utils.timezone_utils import ensure_utc, get_utc_time

logger = logging.getLogger(__name__)


class WeekState(str, enum.Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    RESULTS_SET = "RESULTS_SET"
    SCORED = "SCORED"


def week_lockout(matches):
    """The week's lockout instant: the earliest match lockout"""
    lockouts = [ensure_utc(m.lockout_time) for m in matches if m.lockout_time]
    return min(lockouts) if lockouts else None


def matches_locked(matches, now=None):
    if not matches:
        return False
    if any(m.locked for m in matches):
        return True
    lockout = week_lockout(matches)
    now = ensure_utc(now) if now else get_utc_time()
    return lockout is not None and now >= lockout


def unresolved_match_ids(matches):
    return [m.id for m in matches if not m.is_resolved]


def matches_resolved(matches):
    return bool(matches) and not unresolved_match_ids(matches)


def cursor_passed(week, users):
    """True once any user's current_week has moved beyond ``week``"""
    return any((u.current_week or 1) > week for u in users)


def derive_state(week, matches, users, now=None):
    if cursor_passed(week, users) and matches_resolved(matches):
        return WeekState.SCORED
    if matches_resolved(matches):
        return WeekState.RESULTS_SET
    if matches_locked(matches, now):
        return WeekState.LOCKED
    return WeekState.OPEN


@dataclass
class WeekSnapshot:
    week: int
    state: WeekState
    lockout: object
    locked: bool
    matches: list = field(default_factory=list)
    unresolved: list = field(default_factory=list)

    @property
    def can_score(self):
        return self.state == WeekState.RESULTS_SET

    def to_dict(self):
        return {
            "week": self.week,
            "state": self.state.value,
            "lockoutTime": self.lockout.isoformat() if self.lockout else None,
            "locked": self.locked,
            "matchCount": len(self.matches),
            "unresolvedMatchIds": list(self.unresolved),
            "canScore": self.can_score,
        }


def _week_matches(week):
    matches = store.list_matches(week=week)
    if not matches:
        raise NoSuchWeek(week)
    return matches


def get_week_state(week, now=None):
    matches = _week_matches(week)
    users = store.list_users()
    return WeekSnapshot(
        week=week,
        state=derive_state(week, matches, users, now),
        lockout=week_lockout(matches),
        locked=matches_locked(matches, now),
        matches=matches,
        unresolved=unresolved_match_ids(matches),
    )


def is_fully_resolved(week):
    """True iff every match of the week has a HOME/DRAW/AWAY result"""
    return matches_resolved(_week_matches(week))


def is_already_scored(week):
    return cursor_passed(week, store.list_users())


def can_score(week):
    return is_fully_resolved(week) and not is_already_scored(week)


def ensure_scorable(week, force=False):
    """
    Check the scoring guard and return the week's matches.

    Raises NoSuchWeek, NotFullyResolved or AlreadyScored. ``force`` only
    bypasses AlreadyScored; a week with missing results is never scored.
    """
    matches = _week_matches(week)
    unresolved = unresolved_match_ids(matches)
    if unresolved:
        raise NotFullyResolved(week, unresolved)
    if not force and is_already_scored(week):
        raise AlreadyScored(week)
    return matches


def is_week_locked(week, now=None):
    """Lock state of a week; a week without matches is reported unlocked"""
    return matches_locked(store.list_matches(week=week), now)


def list_weeks(now=None):
    """
    Overview of all weeks for pick and view navigation.

    The pick week is the latest week; the view week is the latest week once
    it has locked, otherwise the one before it.
    """
    matches = store.list_matches()
    by_week = {}
    for match in matches:
        by_week.setdefault(match.week, []).append(match)

    weeks = sorted(by_week)
    detail = [
        {
            "week": week,
            "earliest": (
                week_lockout(by_week[week]).isoformat()
                if week_lockout(by_week[week])
                else None
            ),
            "locked": matches_locked(by_week[week], now),
        }
        for week in weeks
    ]

    latest = weeks[-1] if weeks else None
    view_week = latest
    if latest is not None and not detail[-1]["locked"]:
        view_week = weeks[-2] if len(weeks) > 1 else latest

    return {
        "weeks": weeks,
        "latest": latest,
        "recommendedPickWeek": latest,
        "recommendedViewWeek": view_week,
        "detail": detail,
    }
