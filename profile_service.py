import datetime
import logging
import sqlite3
from typing import Optional

from db import BodyWeightRepository, UserStatsRepository
from errors import PartialWriteFailure
from settings_schema import validate_stats

logger = logging.getLogger(__name__)

DEFAULT_STATS = {
    "name": "",
    "bodyweight": 0.0,
    "bench": 0.0,
    "squat": 0.0,
    "deadlift": 0.0,
    "preferences": {},
}


class ProfileService:
    """Read and write a user's body stats and bodyweight log."""

    def __init__(
        self,
        stats_repo: UserStatsRepository,
        body_weight_repo: BodyWeightRepository,
        recent_limit: int = 12,
    ) -> None:
        self.stats = stats_repo
        self.body_weights = body_weight_repo
        self.recent_limit = recent_limit

    async def load_stats(self, user_id: str) -> dict:
        row = await self.stats.fetch(user_id)
        if row is None:
            return {"user_id": user_id, **DEFAULT_STATS, "preferences": {}}
        return row

    async def save_stats(
        self, user_id: str, fields: dict, today: Optional[datetime.date] = None
    ) -> None:
        """Replace the whole stats row and log the bodyweight when one is given.

        ``fields`` must be the complete record; omitted values are stored as
        empty. The stats write and the log append are separate statements.
        """
        stats = validate_stats(fields)
        await self.stats.upsert(user_id, stats)
        weight = stats.get("bodyweight")
        if not weight or weight <= 0:
            return
        date = (today or datetime.date.today()).isoformat()
        try:
            await self.body_weights.log(user_id, date, weight)
        except sqlite3.Error as e:
            logger.exception("stats saved for %s but bodyweight log failed", user_id)
            raise PartialWriteFailure("stats saved but bodyweight log failed") from e

    async def load_recent_bodyweights(
        self, user_id: str, limit: Optional[int] = None
    ) -> list[dict]:
        if limit is None:
            limit = self.recent_limit
        rows = await self.body_weights.fetch_recent(user_id, limit)
        return [{"ts": ts, "weight": weight} for ts, weight in rows]

    async def bodyweight_history(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[dict]:
        """Return one entry per day, oldest first; the last save of a day wins."""
        per_day: dict[str, float] = {}
        for ts, weight in await self.body_weights.fetch_history(user_id, start_date, end_date):
            per_day[ts] = weight
        return [{"ts": ts, "weight": weight} for ts, weight in per_day.items()]
