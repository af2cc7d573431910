import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from account_service import AccountService, hash_password
from db import (
    BaseRepository,
    BodyWeightRepository,
    Database,
    UserRepository,
    UserSettingsRepository,
    UserStatsRepository,
    WorkoutLogRepository,
    WorkoutRepository,
)
from errors import DuplicateUsername, InvalidCredentials, NotFound, ValidationError
from profile_service import ProfileService
from session_service import WorkoutSession
from settings_service import UserSettingsService


async def make_service(tmp_path) -> AccountService:
    db = Database(str(tmp_path / "accounts.db"))
    await db.initialize()
    return AccountService(UserRepository(db))


@pytest.mark.asyncio
async def test_register_then_login(tmp_path):
    svc = await make_service(tmp_path)
    uid = await svc.register("alice", "s3cret")
    session = await svc.login("alice", "s3cret")
    assert session.id == uid
    assert session.username == "alice"
    assert set(session.to_dict()) == {"id", "username"}


@pytest.mark.asyncio
async def test_only_hash_is_stored(tmp_path):
    svc = await make_service(tmp_path)
    uid = await svc.register("alice", "s3cret")
    row = await svc.users.fetch_first(
        "SELECT password_hash FROM users WHERE id = ?;", (uid,)
    )
    assert row["password_hash"] == hash_password("s3cret")
    assert row["password_hash"] != "s3cret"
    assert len(row["password_hash"]) == 64


@pytest.mark.asyncio
async def test_register_creates_empty_stats(tmp_path):
    svc = await make_service(tmp_path)
    uid = await svc.register("alice", "pw")
    stats = await UserStatsRepository(svc.users.db).fetch(uid)
    assert stats["name"] == ""
    assert stats["bodyweight"] == 0
    assert stats["preferences"] == {}


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_user_look_the_same(tmp_path):
    svc = await make_service(tmp_path)
    await svc.register("alice", "pw")
    with pytest.raises(InvalidCredentials) as wrong:
        await svc.login("alice", "nope")
    with pytest.raises(InvalidCredentials) as unknown:
        await svc.login("mallory", "pw")
    assert type(wrong.value) is type(unknown.value)
    assert str(wrong.value) == str(unknown.value)


@pytest.mark.asyncio
async def test_duplicate_username(tmp_path):
    svc = await make_service(tmp_path)
    await svc.register("alice", "pw")
    with pytest.raises(DuplicateUsername):
        await svc.register("alice", "other")
    assert await svc.users.count("alice") == 1
    rows = await svc.users.fetch_all("SELECT user_id FROM user_stats;")
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_blank_credentials_rejected(tmp_path):
    svc = await make_service(tmp_path)
    with pytest.raises(ValidationError):
        await svc.register("  ", "pw")
    with pytest.raises(ValidationError):
        await svc.register("bob", "")
    assert await svc.users.count() == 0


@pytest.mark.asyncio
async def test_quote_in_username_is_stored_verbatim(tmp_path):
    svc = await make_service(tmp_path)
    await svc.register("o'neil\"; DROP TABLE users;--", "pw")
    session = await svc.login("o'neil\"; DROP TABLE users;--", "pw")
    assert session.username == "o'neil\"; DROP TABLE users;--"
    assert await svc.users.count() == 1


@pytest.mark.asyncio
async def test_delete_account_removes_only_owned_rows(tmp_path):
    svc = await make_service(tmp_path)
    db = svc.users.db
    profile = ProfileService(UserStatsRepository(db), BodyWeightRepository(db))
    settings = UserSettingsService(UserSettingsRepository(db))
    workouts = WorkoutRepository(db)
    logs = WorkoutLogRepository(db)

    owners = []
    for name in ("alice", "bob"):
        uid = await svc.register(name, "pw")
        await profile.save_stats(uid, {"name": name, "bodyweight": 80.0})
        await settings.load(uid)
        wid = await workouts.create(uid, "Push", "", [{"name": "Bench", "sets": 2, "reps": 5}])
        session = WorkoutSession(logs, uid, await workouts.fetch_detail(uid, wid))
        start = datetime.datetime(2024, 1, 1, 10, 0)
        session.start(now=start)
        session.toggle_completed(0)
        await session.finish(now=start + datetime.timedelta(minutes=30))
        owners.append(uid)

    alice, bob = owners
    await svc.delete_account(alice)

    raw = BaseRepository(db)
    for table, column in [
        ("users", "id"),
        ("user_stats", "user_id"),
        ("user_settings", "user_id"),
        ("bodyweight_logs", "user_id"),
        ("workouts", "user_id"),
        ("workout_logs", "user_id"),
    ]:
        rows = await raw.fetch_all(f"SELECT {column} FROM {table};")
        assert [r[0] for r in rows] == [bob], table
    rows = await raw.fetch_all(
        "SELECT s.id FROM workout_sets s JOIN workout_logs l ON l.id = s.workout_log_id WHERE l.user_id = ?;",
        (bob,),
    )
    assert len(rows) == 1
    assert len(await raw.fetch_all("SELECT id FROM workout_sets;")) == 1

    with pytest.raises(NotFound):
        await svc.delete_account(alice)
    with pytest.raises(InvalidCredentials):
        await svc.login("alice", "pw")
