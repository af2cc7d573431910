from __future__ import annotations

import re
from typing import Optional

from db import WorkoutLogRepository, WorkoutRepository, WorkoutSetRepository
from errors import ValidationError
from settings_schema import validate_exercises

_SCHEME = re.compile(r"(\d+)\s*x\s*(\d+)")


def parse_scheme(scheme: str, label: str = "") -> tuple[int, int]:
    """Return ``(sets, reps)`` from text like ``"5x3-5"``, using the low end of a rep range.

    Falls back to a scheme embedded in ``label`` and finally to a single rep.
    """
    for text in (scheme, label):
        match = _SCHEME.search(text or "")
        if match:
            return int(match.group(1)), int(match.group(2))
    return 1, 1


class WorkoutTemplateService:
    """Create, list, fetch and delete workout templates."""

    def __init__(self, workout_repo: WorkoutRepository) -> None:
        self.workouts = workout_repo

    async def create(
        self,
        user_id: str,
        name: str,
        description: Optional[str],
        exercises: list[dict],
    ) -> str:
        if not name or not name.strip():
            raise ValidationError("workout name required")
        cleaned = validate_exercises(exercises)
        return await self.workouts.create(
            user_id, name.strip(), (description or "").strip(), cleaned
        )

    async def list(self, user_id: str) -> list[dict]:
        return await self.workouts.fetch_for_user(user_id)

    async def get(self, user_id: str, workout_id: str) -> dict:
        return await self.workouts.fetch_detail(user_id, workout_id)

    async def delete(self, workout_id: str) -> None:
        """Delete a template. Logs recorded from it keep their ``workout_id``."""
        await self.workouts.delete(workout_id)

    async def create_from_program_day(self, user_id: str, day: dict) -> str:
        exercises = []
        for entry in day["exercises"]:
            sets, reps = parse_scheme(entry.get("sets", ""), entry["name"])
            exercises.append({"name": entry["name"], "sets": sets, "reps": reps})
        return await self.create(user_id, day["title"], "", exercises)


class WorkoutHistoryService:
    """Read finished sessions, including those whose template was deleted."""

    def __init__(
        self, log_repo: WorkoutLogRepository, set_repo: WorkoutSetRepository
    ) -> None:
        self.logs = log_repo
        self.sets = set_repo

    async def list_logs(self, user_id: str, limit: Optional[int] = None) -> list[dict]:
        return await self.logs.fetch_for_user(user_id, limit)

    async def get_log(self, user_id: str, log_id: str) -> dict:
        log = await self.logs.fetch_detail(user_id, log_id)
        log["sets"] = await self.sets.fetch_for_log(log_id)
        return log
