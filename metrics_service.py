import datetime
from typing import Iterable, Optional

from algorithms import MathTools
from db import BodyWeightRepository, UserStatsRepository, WorkoutSetRepository

LIFTS = ("bench", "squat", "deadlift")


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value)[:10])


def streak(
    dates: Iterable,
    today: Optional[datetime.date] = None,
    max_days: int = 365,
) -> int:
    """Count consecutive logged days ending today, at most ``max_days``."""
    days = {_as_date(d) for d in dates}
    today = today or datetime.date.today()
    count = 0
    while count < max_days and today - datetime.timedelta(days=count) in days:
        count += 1
    return count


def daily_progress(dates: Iterable, today: Optional[datetime.date] = None) -> int:
    today = today or datetime.date.today()
    return 100 if any(_as_date(d) == today for d in dates) else 0


def best_sets(history: Iterable[tuple[str, int, float, str]]) -> list[dict]:
    """Return the best logged set per exercise based on estimated 1RM."""
    records: dict[str, dict] = {}
    for name, reps, weight, completed_at in history:
        if reps <= 0 or weight <= 0:
            continue
        est = MathTools.epley_1rm(float(weight), int(reps))
        current = records.get(name)
        if current is None or est > current["est_1rm"]:
            records[name] = {
                "exercise": name,
                "date": str(completed_at)[:10],
                "reps": int(reps),
                "weight": float(weight),
                "est_1rm": round(est, 2),
            }
    return sorted(records.values(), key=lambda x: x["exercise"])


def pr_summary(stats: Optional[dict], history: Iterable = ()) -> dict:
    stats = stats or {}
    lifts = {
        lift: float(stats[lift]) if stats.get(lift) else None for lift in LIFTS
    }
    entered = [v for v in lifts.values() if v]
    return {
        **lifts,
        "total": sum(entered) if entered else None,
        "best_sets": best_sets(history),
    }


class MetricsService:
    """Compute dashboard figures from freshly read rows."""

    def __init__(
        self,
        stats_repo: UserStatsRepository,
        body_weight_repo: BodyWeightRepository,
        set_repo: WorkoutSetRepository,
        streak_max_days: int = 365,
        recent_limit: int = 12,
    ) -> None:
        self.stats = stats_repo
        self.body_weights = body_weight_repo
        self.sets = set_repo
        self.streak_max_days = streak_max_days
        self.recent_limit = recent_limit

    async def dashboard(
        self, user_id: str, today: Optional[datetime.date] = None
    ) -> dict:
        today = today or datetime.date.today()
        since = (today - datetime.timedelta(days=self.streak_max_days)).isoformat()
        dates = await self.body_weights.fetch_dates(user_id, since)
        recent = await self.body_weights.fetch_recent(user_id, self.recent_limit)
        stats = await self.stats.fetch(user_id)
        history = await self.sets.fetch_history(user_id)
        return {
            "streak": streak(dates, today, self.streak_max_days),
            "daily_progress": daily_progress(dates, today),
            "prs": pr_summary(stats, history),
            "recent_bodyweights": [{"ts": ts, "weight": w} for ts, w in recent],
        }
