import datetime
import json
import logging
import re
import sqlite3
import uuid
from contextlib import asynccontextmanager
from typing import Iterable, List, Optional, Tuple

import aiosqlite

from errors import (
    DuplicateUsername,
    InvalidInput,
    NotFound,
    StoreInitializationError,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

_FOREIGN_KEY = re.compile(r"FOREIGN KEY\s*\((\w+)\)\s*REFERENCES\s+(\w+)\s*\((\w+)\)", re.I)


def new_id() -> str:
    """Return a new opaque row identifier."""
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class Database:
    """Provides SQLite connection management and schema initialization."""

    # Insertion order is creation order: parents before the tables referencing them.
    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id TEXT PRIMARY KEY NOT NULL,
                    username TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            ["id", "username", "password_hash", "created_at"],
        ),
        "user_stats": (
            """CREATE TABLE user_stats (
                    user_id TEXT PRIMARY KEY NOT NULL,
                    name TEXT,
                    bodyweight REAL,
                    bench REAL,
                    squat REAL,
                    deadlift REAL,
                    preferences TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["user_id", "name", "bodyweight", "bench", "squat", "deadlift", "preferences"],
        ),
        "bodyweight_logs": (
            """CREATE TABLE bodyweight_logs (
                    id TEXT PRIMARY KEY NOT NULL,
                    user_id TEXT NOT NULL,
                    ts TEXT NOT NULL,
                    weight REAL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["id", "user_id", "ts", "weight"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY NOT NULL,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    exercises TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["id", "user_id", "name", "description", "exercises", "created_at"],
        ),
        # workout_id is deliberately unconstrained: logs outlive their template.
        "workout_logs": (
            """CREATE TABLE workout_logs (
                    id TEXT PRIMARY KEY NOT NULL,
                    user_id TEXT NOT NULL,
                    workout_id TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    duration INTEGER,
                    notes TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["id", "user_id", "workout_id", "completed_at", "duration", "notes"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id TEXT PRIMARY KEY NOT NULL,
                    workout_log_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    completed INTEGER DEFAULT 0,
                    FOREIGN KEY(workout_log_id) REFERENCES workout_logs(id)
                );""",
            [
                "id",
                "workout_log_id",
                "exercise_name",
                "set_number",
                "reps",
                "weight",
                "completed",
            ],
        ),
        "user_settings": (
            """CREATE TABLE user_settings (
                    user_id TEXT PRIMARY KEY NOT NULL,
                    theme TEXT,
                    accent TEXT,
                    notifications INTEGER,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["user_id", "theme", "accent", "notifications"],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_bodyweight_logs_user_ts ON bodyweight_logs (user_id, ts);",
        "CREATE INDEX IF NOT EXISTS idx_workouts_user_created ON workouts (user_id, created_at);",
        "CREATE INDEX IF NOT EXISTS idx_workout_logs_user_completed ON workout_logs (user_id, completed_at);",
        "CREATE INDEX IF NOT EXISTS idx_workout_sets_log ON workout_sets (workout_log_id);",
    ]

    def __init__(self, db_path: str = "prvault.db") -> None:
        self._db_path = db_path
        self._ready = False

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """Open (or create) the database file and ensure every table exists."""
        try:
            async with aiosqlite.connect(self._db_path) as conn:
                await conn.execute("PRAGMA foreign_keys=off;")
                # keep references in other tables pointing at the original name during rebuilds
                await conn.execute("PRAGMA legacy_alter_table=on;")
                for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                    await self._ensure_table(conn, table, sql, columns)
                for stmt in self._INDEXES:
                    await conn.execute(stmt)
                await conn.commit()
                await conn.execute("PRAGMA legacy_alter_table=off;")
                await conn.execute("PRAGMA foreign_keys=on;")
        except (sqlite3.Error, OSError) as e:
            logger.error("cannot initialize database at %s: %s", self._db_path, e)
            raise StoreInitializationError(
                f"cannot initialize database at {self._db_path}: {e}"
            ) from e
        self._ready = True
        logger.info("database ready at %s", self._db_path)

    async def _ensure_table(
        self, conn: aiosqlite.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = await conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if await cur.fetchone() is None:
            await conn.execute(sql)
            return

        cur = await conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in await cur.fetchall()]
        cur = await conn.execute(f"PRAGMA foreign_key_list({table});")
        existing_fks = {(row[3], row[2], row[4]) for row in await cur.fetchall()}
        if existing_cols == columns and existing_fks == set(_FOREIGN_KEY.findall(sql)):
            return

        logger.info("rebuilding table %s (columns %s -> %s)", table, existing_cols, columns)
        await conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        await conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        await conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("created_at", "completed_at"):
                        return "strftime('%Y-%m-%dT%H:%M:%SZ', 'now')"
                    if col in ("completed", "duration"):
                        return "0"
                    if col == "notifications":
                        return "1"
                    if col == "theme":
                        return "'dark'"
                    if col == "accent":
                        return "'original'"
                    if col == "preferences":
                        return "'{}'"
                    if col in ("notes", "description", "name"):
                        return "''"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                await conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                await conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        await conn.execute(f"DROP TABLE {table}_old;")

    @asynccontextmanager
    async def connection(self):
        if not self._ready:
            raise StoreUnavailable("database not initialized")
        conn = await aiosqlite.connect(self._db_path)
        conn.row_factory = aiosqlite.Row
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            # uncommitted work is discarded when the connection closes
            await conn.close()

    async def table_names(self) -> List[str]:
        async with self.connection() as conn:
            cur = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
            )
            return [row[0] for row in await cur.fetchall()]


class Transaction:
    """Query primitives bound to one open connection."""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def execute(self, query: str, params: Tuple = ()) -> None:
        await self._conn.execute(query, params)

    async def execute_rowcount(self, query: str, params: Tuple = ()) -> int:
        cursor = await self._conn.execute(query, params)
        return cursor.rowcount

    async def fetch_first(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        cursor = await self._conn.execute(query, params)
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        cursor = await self._conn.execute(query, params)
        return list(await cursor.fetchall())


class BaseRepository:
    """Base repository providing the four query primitives over a :class:`Database`."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @asynccontextmanager
    async def transaction(self):
        """Run several statements on one connection, committed together."""
        async with self.db.connection() as conn:
            yield Transaction(conn)

    async def execute(self, query: str, params: Tuple = ()) -> None:
        async with self.transaction() as tx:
            await tx.execute(query, params)

    async def execute_rowcount(self, query: str, params: Tuple = ()) -> int:
        async with self.transaction() as tx:
            return await tx.execute_rowcount(query, params)

    async def fetch_first(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        async with self.transaction() as tx:
            return await tx.fetch_first(query, params)

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        async with self.transaction() as tx:
            return await tx.fetch_all(query, params)


class UserRepository(BaseRepository):
    """Repository for user accounts."""

    async def create(self, username: str, password_hash: str) -> str:
        """Insert a user together with its empty stats row."""
        user_id = new_id()
        try:
            async with self.transaction() as tx:
                await tx.execute(
                    "INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?);",
                    (user_id, username, password_hash, utc_now()),
                )
                await tx.execute(
                    "INSERT INTO user_stats (user_id, name, bodyweight, bench, squat, deadlift, preferences) VALUES (?, ?, ?, ?, ?, ?, ?);",
                    (user_id, "", 0, 0, 0, 0, "{}"),
                )
        except sqlite3.IntegrityError as e:
            if "users.username" in str(e):
                raise DuplicateUsername(f"username {username!r} already exists") from e
            raise
        return user_id

    async def fetch_by_credentials(
        self, username: str, password_hash: str
    ) -> Optional[Tuple[str, str]]:
        row = await self.fetch_first(
            "SELECT id, username FROM users WHERE username = ? AND password_hash = ?;",
            (username, password_hash),
        )
        if row is None:
            return None
        return row["id"], row["username"]

    async def fetch_detail(self, user_id: str) -> dict:
        row = await self.fetch_first(
            "SELECT id, username, created_at FROM users WHERE id = ?;",
            (user_id,),
        )
        if row is None:
            raise NotFound("user not found")
        return dict(row)

    async def count(self, username: Optional[str] = None) -> int:
        if username is None:
            row = await self.fetch_first("SELECT COUNT(*) FROM users;")
        else:
            row = await self.fetch_first(
                "SELECT COUNT(*) FROM users WHERE username = ?;", (username,)
            )
        return int(row[0])

    async def delete_cascade(self, user_id: str) -> None:
        """Remove the user and every row it owns in one transaction."""
        async with self.transaction() as tx:
            row = await tx.fetch_first("SELECT id FROM users WHERE id = ?;", (user_id,))
            if row is None:
                raise NotFound("user not found")
            await tx.execute(
                "DELETE FROM workout_sets WHERE workout_log_id IN "
                "(SELECT id FROM workout_logs WHERE user_id = ?);",
                (user_id,),
            )
            await tx.execute("DELETE FROM workout_logs WHERE user_id = ?;", (user_id,))
            await tx.execute("DELETE FROM workouts WHERE user_id = ?;", (user_id,))
            await tx.execute("DELETE FROM bodyweight_logs WHERE user_id = ?;", (user_id,))
            await tx.execute("DELETE FROM user_stats WHERE user_id = ?;", (user_id,))
            await tx.execute("DELETE FROM user_settings WHERE user_id = ?;", (user_id,))
            await tx.execute("DELETE FROM users WHERE id = ?;", (user_id,))


class UserStatsRepository(BaseRepository):
    """Repository for the single stats row of each user."""

    async def fetch(self, user_id: str) -> Optional[dict]:
        row = await self.fetch_first(
            "SELECT user_id, name, bodyweight, bench, squat, deadlift, preferences FROM user_stats WHERE user_id = ?;",
            (user_id,),
        )
        if row is None:
            return None
        data = dict(row)
        try:
            data["preferences"] = json.loads(data["preferences"] or "{}")
        except ValueError:
            logger.warning("unreadable preferences for user %s", user_id)
            data["preferences"] = {}
        return data

    async def upsert(self, user_id: str, stats: dict) -> None:
        await self.execute(
            "INSERT OR REPLACE INTO user_stats (user_id, name, bodyweight, bench, squat, deadlift, preferences) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                user_id,
                stats.get("name"),
                stats.get("bodyweight"),
                stats.get("bench"),
                stats.get("squat"),
                stats.get("deadlift"),
                json.dumps(stats.get("preferences") or {}),
            ),
        )


class BodyWeightRepository(BaseRepository):
    """Repository for body weight logs."""

    async def log(self, user_id: str, date: str, weight: float) -> str:
        if weight < 0:
            raise InvalidInput("weight must be non-negative")
        entry_id = new_id()
        await self.execute(
            "INSERT INTO bodyweight_logs (id, user_id, ts, weight) VALUES (?, ?, ?, ?);",
            (entry_id, user_id, date, weight),
        )
        return entry_id

    async def fetch_recent(self, user_id: str, limit: int = 12) -> list[tuple[str, float]]:
        rows = await self.fetch_all(
            "SELECT ts, weight FROM bodyweight_logs WHERE user_id = ? ORDER BY ts DESC, rowid DESC LIMIT ?;",
            (user_id, limit),
        )
        return [(r["ts"], float(r["weight"] or 0.0)) for r in rows]

    async def fetch_history(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[tuple[str, float]]:
        query = "SELECT ts, weight FROM bodyweight_logs WHERE user_id = ?"
        params: list[str] = [user_id]
        if start_date:
            query += " AND ts >= ?"
            params.append(start_date)
        if end_date:
            query += " AND ts <= ?"
            params.append(end_date)
        query += " ORDER BY ts, rowid;"
        rows = await self.fetch_all(query, tuple(params))
        return [(r["ts"], float(r["weight"] or 0.0)) for r in rows]

    async def fetch_dates(self, user_id: str, since: Optional[str] = None) -> list[str]:
        """Return the distinct logged dates, newest first."""
        if since:
            rows = await self.fetch_all(
                "SELECT DISTINCT ts FROM bodyweight_logs WHERE user_id = ? AND ts >= ? ORDER BY ts DESC;",
                (user_id, since),
            )
        else:
            rows = await self.fetch_all(
                "SELECT DISTINCT ts FROM bodyweight_logs WHERE user_id = ? ORDER BY ts DESC;",
                (user_id,),
            )
        return [r["ts"] for r in rows]


class WorkoutRepository(BaseRepository):
    """Repository for user-authored workout templates."""

    @staticmethod
    def _to_dict(row: sqlite3.Row) -> dict:
        data = dict(row)
        data["exercises"] = json.loads(data["exercises"] or "[]")
        return data

    async def create(
        self, user_id: str, name: str, description: Optional[str], exercises: list[dict]
    ) -> str:
        workout_id = new_id()
        await self.execute(
            "INSERT INTO workouts (id, user_id, name, description, exercises, created_at) VALUES (?, ?, ?, ?, ?, ?);",
            (workout_id, user_id, name, description, json.dumps(exercises), utc_now()),
        )
        return workout_id

    async def fetch_for_user(self, user_id: str) -> list[dict]:
        rows = await self.fetch_all(
            "SELECT id, user_id, name, description, exercises, created_at FROM workouts WHERE user_id = ? ORDER BY created_at DESC, rowid DESC;",
            (user_id,),
        )
        return [self._to_dict(r) for r in rows]

    async def fetch_detail(self, user_id: str, workout_id: str) -> dict:
        row = await self.fetch_first(
            "SELECT id, user_id, name, description, exercises, created_at FROM workouts WHERE id = ? AND user_id = ?;",
            (workout_id, user_id),
        )
        if row is None:
            raise NotFound("workout not found")
        return self._to_dict(row)

    async def delete(self, workout_id: str) -> None:
        deleted = await self.execute_rowcount(
            "DELETE FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not deleted:
            raise NotFound("workout not found")


class WorkoutLogRepository(BaseRepository):
    """Repository for finished workout sessions."""

    async def record(
        self,
        user_id: str,
        workout_id: str,
        duration: int,
        sets: Iterable[dict],
        notes: str = "",
        completed_at: Optional[str] = None,
    ) -> str:
        """Insert a log and its sets in one transaction and return the log id."""
        log_id = new_id()
        async with self.transaction() as tx:
            await tx.execute(
                "INSERT INTO workout_logs (id, user_id, workout_id, completed_at, duration, notes) VALUES (?, ?, ?, ?, ?, ?);",
                (log_id, user_id, workout_id, completed_at or utc_now(), duration, notes),
            )
            for entry in sets:
                await tx.execute(
                    "INSERT INTO workout_sets (id, workout_log_id, exercise_name, set_number, reps, weight, completed) VALUES (?, ?, ?, ?, ?, ?, 1);",
                    (
                        new_id(),
                        log_id,
                        entry["exercise_name"],
                        entry["set_number"],
                        entry["reps"],
                        entry["weight"],
                    ),
                )
        return log_id

    async def fetch_for_user(self, user_id: str, limit: Optional[int] = None) -> list[dict]:
        query = (
            "SELECT l.id, l.user_id, l.workout_id, w.name AS workout_name, l.completed_at, l.duration, l.notes "
            "FROM workout_logs l LEFT JOIN workouts w ON w.id = l.workout_id "
            "WHERE l.user_id = ? ORDER BY l.completed_at DESC, l.rowid DESC"
        )
        params: list[str | int] = [user_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = await self.fetch_all(query + ";", tuple(params))
        return [dict(r) for r in rows]

    async def fetch_detail(self, user_id: str, log_id: str) -> dict:
        row = await self.fetch_first(
            "SELECT l.id, l.user_id, l.workout_id, w.name AS workout_name, l.completed_at, l.duration, l.notes "
            "FROM workout_logs l LEFT JOIN workouts w ON w.id = l.workout_id "
            "WHERE l.id = ? AND l.user_id = ?;",
            (log_id, user_id),
        )
        if row is None:
            raise NotFound("workout log not found")
        return dict(row)


class WorkoutSetRepository(BaseRepository):
    """Repository for the sets recorded with a workout log."""

    async def fetch_for_log(self, log_id: str) -> list[dict]:
        rows = await self.fetch_all(
            "SELECT id, exercise_name, set_number, reps, weight, completed FROM workout_sets WHERE workout_log_id = ? ORDER BY exercise_name, set_number;",
            (log_id,),
        )
        return [dict(r) for r in rows]

    async def fetch_history(self, user_id: str) -> list[tuple[str, int, float, str]]:
        """Return ``(exercise, reps, weight, completed_at)`` for every completed set."""
        rows = await self.fetch_all(
            "SELECT s.exercise_name, s.reps, s.weight, l.completed_at "
            "FROM workout_sets s JOIN workout_logs l ON l.id = s.workout_log_id "
            "WHERE l.user_id = ? AND s.completed = 1 ORDER BY l.completed_at;",
            (user_id,),
        )
        return [
            (r["exercise_name"], int(r["reps"] or 0), float(r["weight"] or 0.0), r["completed_at"])
            for r in rows
        ]


class UserSettingsRepository(BaseRepository):
    """Repository for per-user appearance and notification settings."""

    async def fetch(self, user_id: str) -> Optional[dict]:
        row = await self.fetch_first(
            "SELECT user_id, theme, accent, notifications FROM user_settings WHERE user_id = ?;",
            (user_id,),
        )
        if row is None:
            return None
        data = dict(row)
        if data["notifications"] is not None:
            data["notifications"] = bool(data["notifications"])
        return data

    async def ensure(self, user_id: str, theme: str, accent: str, notifications: bool) -> None:
        await self.execute(
            "INSERT OR IGNORE INTO user_settings (user_id, theme, accent, notifications) VALUES (?, ?, ?, ?);",
            (user_id, theme, accent, int(notifications)),
        )

    async def upsert(self, user_id: str, theme: str, accent: str, notifications: bool) -> None:
        await self.execute(
            "INSERT OR REPLACE INTO user_settings (user_id, theme, accent, notifications) VALUES (?, ?, ?, ?);",
            (user_id, theme, accent, int(notifications)),
        )
