import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import BaseRepository, Database, WorkoutLogRepository, WorkoutRepository
from errors import InvalidInput, InvalidSessionState, NoCompletedSets, NotFound
from session_service import SessionState, WorkoutSessionService

START = datetime.datetime(2024, 6, 1, 7, 30, tzinfo=datetime.timezone.utc)
EXERCISES = [
    {"name": "Squat", "sets": 3, "reps": 5},
    {"name": "Leg Press", "sets": 2, "reps": 10},
]


async def open_session(tmp_path):
    db = Database(str(tmp_path / "session.db"))
    await db.initialize()
    raw = BaseRepository(db)
    await raw.execute(
        "INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?);",
        ("u1", "alice", "h", "2024-01-01"),
    )
    workouts = WorkoutRepository(db)
    wid = await workouts.create("u1", "Legs", "", EXERCISES)
    service = WorkoutSessionService(workouts, WorkoutLogRepository(db))
    return await service.open("u1", wid), raw


async def counts(raw: BaseRepository) -> tuple[int, int]:
    logs = await raw.fetch_first("SELECT COUNT(*) FROM workout_logs;")
    sets = await raw.fetch_first("SELECT COUNT(*) FROM workout_sets;")
    return logs[0], sets[0]


@pytest.mark.asyncio
async def test_sets_expand_from_template(tmp_path):
    session, _ = await open_session(tmp_path)
    assert session.state is SessionState.NOT_STARTED
    assert [(s["exercise_name"], s["set_number"]) for s in session.sets] == [
        ("Squat", 1),
        ("Squat", 2),
        ("Squat", 3),
        ("Leg Press", 1),
        ("Leg Press", 2),
    ]
    assert session.sets[3]["target_reps"] == 10
    assert all(s["reps"] == "" and not s["completed"] for s in session.sets)


@pytest.mark.asyncio
async def test_edits_require_active_session(tmp_path):
    session, _ = await open_session(tmp_path)
    with pytest.raises(InvalidSessionState):
        session.toggle_completed(0)
    with pytest.raises(InvalidSessionState):
        await session.finish()
    session.start(now=START)
    with pytest.raises(InvalidSessionState):
        session.start(now=START)
    with pytest.raises(InvalidInput):
        session.update_set(99, "reps", "5")
    with pytest.raises(InvalidInput):
        session.update_set(0, "exercise_name", "Deadlift")


@pytest.mark.asyncio
async def test_finish_without_completed_sets(tmp_path):
    session, raw = await open_session(tmp_path)
    session.start(now=START)
    session.update_set(0, "reps", "5")
    with pytest.raises(NoCompletedSets):
        await session.finish(now=START)
    assert session.state is SessionState.ACTIVE
    assert await counts(raw) == (0, 0)


@pytest.mark.asyncio
async def test_finish_persists_only_completed_sets(tmp_path):
    session, raw = await open_session(tmp_path)
    session.start(now=START)
    for index, (reps, weight) in [(0, ("5", "100")), (2, ("4", "102.5")), (3, ("ten", ""))]:
        session.update_set(index, "reps", reps)
        session.update_set(index, "weight", weight)
        assert session.toggle_completed(index) is True
    session.toggle_completed(1)
    session.toggle_completed(1)

    log_id = await session.finish(notes="felt good", now=START + datetime.timedelta(seconds=1234.9))

    assert session.state is SessionState.RECORDED
    assert session.log_id == log_id
    assert await counts(raw) == (1, 3)
    log = await raw.fetch_first(
        "SELECT duration, notes, workout_id FROM workout_logs WHERE id = ?;", (log_id,)
    )
    assert log["duration"] == 1234
    assert log["notes"] == "felt good"
    rows = await raw.fetch_all(
        "SELECT exercise_name, set_number, reps, weight, completed FROM workout_sets ORDER BY exercise_name, set_number;"
    )
    assert [tuple(r) for r in rows] == [
        ("Leg Press", 1, 0, 0.0, 1),
        ("Squat", 1, 5, 100.0, 1),
        ("Squat", 3, 4, 102.5, 1),
    ]
    with pytest.raises(InvalidSessionState):
        await session.finish()


@pytest.mark.asyncio
async def test_cancel_discards_progress(tmp_path):
    session, raw = await open_session(tmp_path)
    session.start(now=START)
    session.update_set(0, "weight", "80")
    session.toggle_completed(0)
    session.cancel()
    assert session.state is SessionState.NOT_STARTED
    assert session.started_at is None
    assert session.completed_sets() == []
    assert session.sets[0]["weight"] == ""
    assert await counts(raw) == (0, 0)
    session.start(now=START)
    assert session.state is SessionState.ACTIVE


@pytest.mark.asyncio
async def test_open_unknown_workout(tmp_path):
    session, _ = await open_session(tmp_path)
    service = WorkoutSessionService(WorkoutRepository(session.logs.db), session.logs)
    with pytest.raises(NotFound):
        await service.open("u1", "missing")


@pytest.mark.asyncio
async def test_naive_and_aware_times_mix(tmp_path):
    session, raw = await open_session(tmp_path)
    session.start(now=datetime.datetime(2024, 6, 1, 7, 30))
    session.toggle_completed(0)
    finished = datetime.datetime(2024, 6, 1, 9, 40, tzinfo=datetime.timezone(datetime.timedelta(hours=2)))
    log_id = await session.finish(now=finished)
    log = await raw.fetch_first(
        "SELECT duration, completed_at FROM workout_logs WHERE id = ?;", (log_id,)
    )
    assert log["duration"] == 10 * 60
    assert log["completed_at"] == "2024-06-01T07:40:00+00:00"
