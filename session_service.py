import datetime
import enum
import logging
import math
from typing import Optional

from db import WorkoutLogRepository, WorkoutRepository
from errors import InvalidInput, InvalidSessionState, NoCompletedSets, ValidationError

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    RECORDED = "recorded"


def _to_int(value) -> int:
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0


def _to_float(value) -> float:
    try:
        number = float(str(value).strip())
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_utc(moment: datetime.datetime) -> datetime.datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc)


class WorkoutSession:
    """In-memory checklist for one run through a template.

    Nothing is written until :meth:`finish`; only completed sets are kept.
    """

    EDITABLE_FIELDS = ("reps", "weight")

    def __init__(self, log_repo: WorkoutLogRepository, user_id: str, workout: dict) -> None:
        self.logs = log_repo
        self.user_id = user_id
        self.workout = workout
        self.state = SessionState.NOT_STARTED
        self.started_at: Optional[datetime.datetime] = None
        self.log_id: Optional[str] = None
        self.sets = self._build_sets()

    def _build_sets(self) -> list[dict]:
        return [
            {
                "exercise_name": ex["name"],
                "set_number": number,
                "target_reps": ex.get("reps"),
                "reps": "",
                "weight": "",
                "completed": False,
            }
            for ex in self.workout["exercises"]
            for number in range(1, int(ex["sets"]) + 1)
        ]

    def _require(self, state: SessionState) -> None:
        if self.state is not state:
            raise InvalidSessionState(f"session is {self.state.value}, expected {state.value}")

    def _entry(self, index: int) -> dict:
        if not 0 <= index < len(self.sets):
            raise InvalidInput(f"no set at index {index}")
        return self.sets[index]

    def start(self, now: Optional[datetime.datetime] = None) -> None:
        self._require(SessionState.NOT_STARTED)
        self.started_at = _as_utc(now or datetime.datetime.now(datetime.timezone.utc))
        self.state = SessionState.ACTIVE

    def update_set(self, index: int, field: str, value) -> None:
        self._require(SessionState.ACTIVE)
        if field not in self.EDITABLE_FIELDS:
            raise InvalidInput(f"cannot edit {field!r}")
        self._entry(index)[field] = value

    def toggle_completed(self, index: int) -> bool:
        self._require(SessionState.ACTIVE)
        entry = self._entry(index)
        entry["completed"] = not entry["completed"]
        return entry["completed"]

    def completed_sets(self) -> list[dict]:
        return [s for s in self.sets if s["completed"]]

    def cancel(self) -> None:
        self._require(SessionState.ACTIVE)
        self.sets = self._build_sets()
        self.started_at = None
        self.state = SessionState.NOT_STARTED

    async def finish(
        self, notes: str = "", now: Optional[datetime.datetime] = None
    ) -> str:
        """Persist the log and its completed sets, returning the log id."""
        self._require(SessionState.ACTIVE)
        completed = self.completed_sets()
        if not completed:
            raise NoCompletedSets("complete at least one set before finishing")
        now = _as_utc(now or datetime.datetime.now(datetime.timezone.utc))
        duration = max(0, int((now - self.started_at).total_seconds()))
        rows = [
            {
                "exercise_name": s["exercise_name"],
                "set_number": s["set_number"],
                "reps": _to_int(s["reps"]),
                "weight": _to_float(s["weight"]),
            }
            for s in completed
        ]
        self.log_id = await self.logs.record(
            self.user_id,
            self.workout["id"],
            duration,
            rows,
            notes=notes,
            completed_at=now.isoformat(),
        )
        self.state = SessionState.RECORDED
        logger.info(
            "recorded session %s: %d of %d sets in %ds",
            self.log_id,
            len(rows),
            len(self.sets),
            duration,
        )
        return self.log_id


class WorkoutSessionService:
    """Open sessions for a user's templates."""

    def __init__(self, workout_repo: WorkoutRepository, log_repo: WorkoutLogRepository) -> None:
        self.workouts = workout_repo
        self.logs = log_repo

    async def open(self, user_id: str, workout_id: str) -> WorkoutSession:
        workout = await self.workouts.fetch_detail(user_id, workout_id)
        if not workout["exercises"]:
            raise ValidationError("workout has no exercises")
        return WorkoutSession(self.logs, user_id, workout)
