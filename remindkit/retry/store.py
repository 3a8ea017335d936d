"""RetryStore — aiosqlite persistence for retry attempts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.db import get_connection
from remindkit.retry.models import RetryAttempt
from remindkit.timeutil import align

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    import aiosqlite

    from remindkit.retry.models import SubjectKey

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS retry_attempts (
    recipient TEXT NOT NULL,
    period TEXT NOT NULL,
    attempt_count INTEGER NOT NULL,
    first_attempt TEXT NOT NULL,
    last_attempt TEXT NOT NULL,
    next_attempt TEXT,
    max_attempts INTEGER NOT NULL,
    interval_seconds INTEGER NOT NULL,
    max_duration_seconds INTEGER NOT NULL,
    is_successful INTEGER NOT NULL DEFAULT 0,
    gave_up INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (recipient, period)
)
"""

_COLUMNS = (
    "recipient, period, attempt_count, first_attempt, last_attempt, next_attempt,"
    " max_attempts, interval_seconds, max_duration_seconds, is_successful, gave_up"
)


class RetryStore:
    """Persists retry attempts in SQLite, keyed by ``(recipient, period)``.

    Singleton accessed via ``RetryStore.get()``.  Pass an explicit *db_path*
    for test isolation.
    """

    _instance: RetryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> RetryStore:
        """Return the shared RetryStore instance."""
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

    async def get_attempt(self, subject: SubjectKey) -> RetryAttempt | None:
        """Fetch the attempt record for *subject*, or None."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM retry_attempts WHERE recipient = ? AND period = ?",
                (subject.recipient, subject.period),
            )
            row = await cursor.fetchone()
            return RetryAttempt.from_row(row) if row else None
        finally:
            await db.close()

    async def insert(self, attempt: RetryAttempt) -> bool:
        """Create the record for a first failure.

        Returns False if a record for the subject already exists, in which
        case nothing is written.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"INSERT OR IGNORE INTO retry_attempts ({_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                attempt.to_row(),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def increment(
        self, subject: SubjectKey, last_attempt: datetime, next_attempt: datetime
    ) -> bool:
        """Bump attempt_count on an active record. Returns True if it was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE retry_attempts"
                " SET attempt_count = attempt_count + 1, last_attempt = ?, next_attempt = ?"
                " WHERE recipient = ? AND period = ? AND is_successful = 0 AND gave_up = 0",
                (
                    last_attempt.isoformat(),
                    next_attempt.isoformat(),
                    subject.recipient,
                    subject.period,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def mark_gave_up(self, subject: SubjectKey) -> bool:
        """Terminal: clear next_attempt so the subject is never polled again."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE retry_attempts SET gave_up = 1, next_attempt = NULL"
                " WHERE recipient = ? AND period = ? AND is_successful = 0 AND gave_up = 0",
                (subject.recipient, subject.period),
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Marked retry subject %s as permanently failed", subject)
            return updated
        finally:
            await db.close()

    async def mark_successful(self, subject: SubjectKey) -> bool:
        """Mark *subject* successful. A second call is a no-op returning False."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE retry_attempts SET is_successful = 1, next_attempt = NULL"
                " WHERE recipient = ? AND period = ? AND is_successful = 0",
                (subject.recipient, subject.period),
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Marked retry subject %s as successful", subject)
            return updated
        finally:
            await db.close()

    async def list_due(self, now: datetime) -> list[RetryAttempt]:
        """Active subjects whose next attempt is at or before *now*.

        The time comparison happens on parsed datetimes, not ISO strings, so
        rows written under different UTC offsets still order correctly.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM retry_attempts"
                " WHERE is_successful = 0 AND gave_up = 0"
                " AND next_attempt IS NOT NULL AND attempt_count < max_attempts"
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()
        attempts = [RetryAttempt.from_row(row) for row in rows]
        due = [a for a in attempts if align(a.next_attempt, now) <= now]
        return sorted(due, key=lambda a: align(a.next_attempt, now))

    async def delete(self, subject: SubjectKey) -> bool:
        """Archive a finished subject by removing its record."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM retry_attempts WHERE recipient = ? AND period = ?",
                (subject.recipient, subject.period),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
