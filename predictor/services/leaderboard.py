"""
Read-only standings: the season leaderboard, the per-week table and the
pick distribution. Nothing here writes to the store.
"""

from predictor.errors import NoSuchWeek
from predictor.models import Outcome
from predictor.services import store, week_state


def accuracy(correct, incorrect):
    """Share of scored predictions that were correct (0.0 - 1.0)"""
    total = (correct or 0) + (incorrect or 0)
    if total == 0:
        return 0.0
    return (correct or 0) / total


def standing_key(user):
    """
    Total ordering of users on the leaderboard: points, full houses,
    accuracy (all descending), then name case-insensitively, then id.
    """
    return (
        -(user.points or 0),
        -(user.full_houses or 0),
        -accuracy(user.correct_results, user.incorrect_results),
        user.name.casefold(),
        user.id,
    )


def get_leaderboard(users=None):
    """Rank every user and return the leaderboard rows"""
    users = store.list_users() if users is None else users
    rows = []
    for position, user in enumerate(sorted(users, key=standing_key), start=1):
        rows.append(
            {
                "position": position,
                "userId": user.id,
                "name": user.name,
                "points": user.points or 0,
                "correct": user.correct_results or 0,
                "incorrect": user.incorrect_results or 0,
                "accuracy": round(
                    accuracy(user.correct_results, user.incorrect_results) * 100, 1
                ),
                "fullHouses": user.full_houses or 0,
                "blanks": user.blanks or 0,
            }
        )
    return rows


def _match_meta(match):
    return {
        "id": match.id,
        "home": match.home_team,
        "away": match.away_team,
        "correct": match.correct_result or "",
    }


def _compact(pick):
    outcome = Outcome.parse(pick)
    return outcome.compact if outcome else "-"


def weekly_table(week, now=None):
    """
    Per-user picks for one week.

    Picks are only exposed once the week has locked; before that the table
    lists the matches with no rows.
    """
    overview = week_state.list_weeks(now)
    available_weeks = [d["week"] for d in reversed(overview["detail"]) if d["locked"]]

    matches = store.list_matches(week=week)
    if not matches:
        return {
            "week": week,
            "locked": False,
            "rows": [],
            "matches": [],
            "availableWeeks": available_weeks,
        }

    locked = week_state.matches_locked(matches, now)
    matches_out = [_match_meta(m) for m in matches]
    if not locked:
        return {
            "week": week,
            "locked": False,
            "rows": [],
            "matches": matches_out,
            "availableWeeks": available_weeks,
        }

    order = [m.id for m in matches]
    results = {m.id: m.result for m in matches}

    by_user = {}
    for prediction in store.list_predictions(match_ids=order):
        by_user.setdefault(prediction.user_id, {})[prediction.match_id] = prediction

    users = {u.id: u for u in store.list_users(ids=list(by_user))}
    rows = []
    for user_id, picks in by_user.items():
        user = users.get(user_id)
        name = user.name if user else f"User {user_id}"
        picks_raw = [picks[mid].pick if mid in picks else "" for mid in order]
        rows.append(
            {
                "userId": user_id,
                "name": name,
                "week": week,
                "points": sum(
                    picks[mid].points_awarded or 0 for mid in order if mid in picks
                ),
                "picks": " ".join(_compact(p) for p in picks_raw),
                "picksRaw": picks_raw,
                "correct": [
                    results[mid] is not None and Outcome.parse(pick) == results[mid]
                    for mid, pick in zip(order, picks_raw)
                ],
            }
        )

    rows.sort(key=lambda r: (-r["points"], r["name"].casefold(), r["userId"]))
    return {
        "week": week,
        "locked": True,
        "rows": rows,
        "matches": matches_out,
        "availableWeeks": available_weeks,
    }


def pick_distribution(week, user_id=None, now=None):
    """
    How the field picked each match of a locked week.

    With ``user_id``, also lists the other users who submitted exactly the
    same picks.
    """
    matches = store.list_matches(week=week)
    if not matches:
        raise NoSuchWeek(week)

    if not week_state.matches_locked(matches, now):
        return {"week": week, "locked": False, "perMatch": [], "samePickUsers": []}

    order = [m.id for m in matches]
    predictions = store.list_predictions(match_ids=order)

    per_match = []
    for match in matches:
        count = {outcome.value: 0 for outcome in Outcome}
        for prediction in predictions:
            outcome = Outcome.parse(prediction.pick)
            if prediction.match_id == match.id and outcome is not None:
                count[outcome.value] += 1
        total = sum(count.values())
        per_match.append(
            {
                "matchId": match.id,
                "homeTeam": match.home_team,
                "awayTeam": match.away_team,
                "count": count,
                "pct": {
                    key: round(100 * value / total) if total else 0
                    for key, value in count.items()
                },
                "total": total,
            }
        )

    same_pick_users = []
    if user_id is not None:
        sequences = {}
        for prediction in sorted(predictions, key=lambda p: p.match_id):
            sequences.setdefault(prediction.user_id, []).append(
                (prediction.match_id, _compact(prediction.pick))
            )
        mine = sequences.get(user_id)
        if mine:
            same_pick_users = sorted(
                uid for uid, seq in sequences.items() if uid != user_id and seq == mine
            )

    return {
        "week": week,
        "locked": True,
        "perMatch": per_match,
        "samePickUsers": same_pick_users,
    }
