"""Async SQLite connection for the local lesson store.

Usage::

    async with Database("data/adept.db") as db:
        plans = await LessonPlanRepository(db).get_all()
"""

import logging
from pathlib import Path
from typing import Self

import aiosqlite

from adept.core.config import get_settings

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS Classes (
    class_id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    subject TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    start_time TEXT NOT NULL DEFAULT '09:00',
    duration_minutes INTEGER NOT NULL DEFAULT 60
);

CREATE TABLE IF NOT EXISTS LessonPlans (
    lesson_id TEXT PRIMARY KEY,
    class_id TEXT NOT NULL,
    date TEXT NOT NULL,
    time_slot INTEGER NOT NULL DEFAULT 0,
    title TEXT NOT NULL,
    learning_objectives TEXT,
    description TEXT,
    calendar_event_id TEXT,
    components_json TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (class_id) REFERENCES Classes (class_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_lessons_class ON LessonPlans(class_id);
CREATE INDEX IF NOT EXISTS idx_lessons_date ON LessonPlans(date);

CREATE TABLE IF NOT EXISTS Settings (
    key TEXT PRIMARY KEY,
    value TEXT,
    last_modified TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


class Database:
    """Async SQLite connection that creates the schema on entry."""

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize with a database path (defaults to settings, ``:memory:`` allowed)."""
        self.path = str(path if path is not None else get_settings().database_path)
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> Self:
        """Open the connection and ensure the schema exists."""
        if self.path != IN_MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.debug("Opened database %s", self.path)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """The open connection."""
        if self._conn is None:
            raise RuntimeError("Database must be used as async context manager")
        return self._conn

    async def fetch_all(self, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        """Run a query and return every row."""
        async with self.conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def fetch_one(self, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        """Run a query and return the first row, if any."""
        async with self.conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def execute(self, sql: str, params: tuple = ()) -> int:
        """Run a statement, commit, and return the affected row count."""
        async with self.conn.execute(sql, params) as cursor:
            rowcount = cursor.rowcount
        await self.conn.commit()
        return rowcount
