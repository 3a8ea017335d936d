"""TaskStore — aiosqlite CRUD for scheduled task definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.db import get_connection
from remindkit.scheduler.cron import CronEvaluator
from remindkit.scheduler.models import ScheduledTaskDefinition

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS scheduled_tasks (
    name TEXT PRIMARY KEY,
    cron_expression TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    retry_interval_hours INTEGER NOT NULL DEFAULT 1,
    max_retry_hours INTEGER NOT NULL DEFAULT 48,
    last_run TEXT,
    next_run TEXT,
    created_at TEXT NOT NULL
)
"""

_COLUMNS = (
    "name, cron_expression, enabled, retry_interval_hours, max_retry_hours,"
    " last_run, next_run, created_at"
)


class TaskStore:
    """Persists scheduled task definitions in SQLite.

    Singleton accessed via ``TaskStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: TaskStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> TaskStore:
        """Return the shared TaskStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    # -- CRUD ------------------------------------------------------------------

    async def add_task(self, task: ScheduledTaskDefinition) -> ScheduledTaskDefinition:
        """Insert a new task definition.

        Raises:
            ConfigurationError: the cron expression does not parse.
            sqlite3.IntegrityError: a task with the same name exists.
        """
        CronEvaluator.parse(task.cron_expression)
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO scheduled_tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
            await db.commit()
            logger.info("Added scheduled task: %s (%s)", task.name, task.cron_expression)
            return task
        finally:
            await db.close()

    async def get_task(self, name: str) -> ScheduledTaskDefinition | None:
        """Fetch a task by name, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM scheduled_tasks WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
            return ScheduledTaskDefinition.from_row(row) if row else None
        finally:
            await db.close()

    async def list_enabled_tasks(self) -> list[ScheduledTaskDefinition]:
        """Return all enabled task definitions."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM scheduled_tasks WHERE enabled = 1 ORDER BY created_at"
            )
            rows = await cursor.fetchall()
            return [ScheduledTaskDefinition.from_row(row) for row in rows]
        finally:
            await db.close()

    async def set_enabled(self, name: str, enabled: bool) -> bool:
        """Enable or disable a task. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE scheduled_tasks SET enabled = ? WHERE name = ?", (int(enabled), name)
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Task %s %s", name, "enabled" if enabled else "disabled")
            return updated
        finally:
            await db.close()

    async def record_run(
        self, name: str, last_run: datetime, next_run: datetime | None
    ) -> None:
        """Set last_run and next_run together in one statement."""
        db = await self._connect()
        try:
            await db.execute(
                "UPDATE scheduled_tasks SET last_run = ?, next_run = ? WHERE name = ?",
                (last_run.isoformat(), next_run.isoformat() if next_run else None, name),
            )
            await db.commit()
        finally:
            await db.close()
