"""ReminderStore — aiosqlite CRUD for reminders."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.config import settings
from remindkit.db import get_connection
from remindkit.reminders.models import Reminder, ReminderSource

if TYPE_CHECKING:
    from datetime import date, datetime, time
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS reminders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    remind_date TEXT NOT NULL,
    remind_time TEXT NOT NULL,
    recipient TEXT,
    sent INTEGER NOT NULL DEFAULT 0,
    source TEXT NOT NULL DEFAULT 'manual'
        CHECK (source IN ('manual', 'auto_extracted', 'schedule_conflict')),
    source_ref TEXT,
    event_type TEXT,
    event_title TEXT,
    confidence_score REAL
        CHECK (confidence_score IS NULL OR confidence_score BETWEEN 0.1 AND 1.0),
    created_at TEXT NOT NULL
)
"""

_INSERT_COLUMNS = (
    "text, remind_date, remind_time, recipient, sent, source, source_ref,"
    " event_type, event_title, confidence_score, created_at"
)
_COLUMNS = "id, " + _INSERT_COLUMNS


def _require(value: str | None, field: str) -> None:
    if value is None or not value.strip():
        msg = f"{field} must not be empty"
        raise ValueError(msg)


class ReminderStore:
    """Persists reminders in SQLite.

    Singleton accessed via ``ReminderStore.get()``.  Pass an explicit
    *db_path* for test isolation.
    """

    _instance: ReminderStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> ReminderStore:
        """Return the shared ReminderStore instance."""
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

    async def _insert(self, reminder: Reminder) -> Reminder:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"INSERT INTO reminders ({_INSERT_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                reminder.to_row(),
            )
            await db.commit()
            reminder.id = cursor.lastrowid
            return reminder
        finally:
            await db.close()

    # -- Create ----------------------------------------------------------------

    async def add_reminder(
        self,
        text: str,
        remind_date: date,
        remind_time: time | None = None,
        recipient: str | None = None,
        *,
        source: ReminderSource = ReminderSource.MANUAL,
    ) -> Reminder:
        """Insert a reminder created by hand. Returns it with its new ID.

        Without *remind_time* the configured default reminder time is used.
        """
        if remind_time is None:
            remind_time = settings.get_default_reminder_time()
        _require(text, "text")
        if recipient is not None:
            _require(recipient, "recipient")
        reminder = await self._insert(
            Reminder(
                text=text,
                remind_date=remind_date,
                remind_time=remind_time,
                recipient=recipient,
                source=source,
            )
        )
        logger.info("Added reminder %d: %s", reminder.id, text)
        return reminder

    async def add_auto_reminder(
        self,
        text: str,
        remind_date: date,
        remind_time: time,
        recipient: str,
        *,
        source_ref: str,
        event_type: str,
        event_title: str,
        confidence_score: float,
    ) -> Reminder:
        """Insert a reminder produced by the extraction pipeline.

        Raises:
            ValueError: a required field is blank or the confidence score is
                outside [0.1, 1.0].
        """
        for value, field in (
            (text, "text"),
            (recipient, "recipient"),
            (source_ref, "source_ref"),
            (event_type, "event_type"),
            (event_title, "event_title"),
        ):
            _require(value, field)
        reminder = await self._insert(
            Reminder(
                text=text,
                remind_date=remind_date,
                remind_time=remind_time,
                recipient=recipient,
                source=ReminderSource.AUTO_EXTRACTED,
                source_ref=source_ref,
                event_type=event_type,
                event_title=event_title,
                confidence_score=confidence_score,
            )
        )
        logger.info(
            "Added auto-extracted reminder %d for %s: %s", reminder.id, recipient, text
        )
        return reminder

    # -- Read ------------------------------------------------------------------

    async def get_reminder(self, reminder_id: int) -> Reminder | None:
        """Fetch a reminder by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM reminders WHERE id = ?", (reminder_id,)
            )
            row = await cursor.fetchone()
            return Reminder.from_row(row) if row else None
        finally:
            await db.close()

    async def list_reminders(self) -> list[Reminder]:
        """Return every reminder, newest target date-time first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM reminders"
                " ORDER BY remind_date DESC, remind_time DESC, id DESC"
            )
            rows = await cursor.fetchall()
            return [Reminder.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_pending(self, now: datetime) -> list[Reminder]:
        """Return unsent reminders due at or before *now*, oldest first.

        *now* is interpreted as local wall-clock time; there is no lower bound,
        so reminders missed during downtime are included.
        """
        today = now.date().isoformat()
        current = now.strftime("%H:%M")
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM reminders"
                " WHERE sent = 0"
                " AND (remind_date < ? OR (remind_date = ? AND remind_time <= ?))"
                " ORDER BY remind_date, remind_time, id",
                (today, today, current),
            )
            rows = await cursor.fetchall()
            return [Reminder.from_row(row) for row in rows]
        finally:
            await db.close()

    # -- Mutate ----------------------------------------------------------------

    async def mark_sent(self, reminder_id: int) -> bool:
        """Flip sent to true. Returns False if it was already sent or is gone."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE reminders SET sent = 1 WHERE id = ? AND sent = 0", (reminder_id,)
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Marked reminder %d as sent", reminder_id)
            return updated
        finally:
            await db.close()

    async def delete_reminder(self, reminder_id: int) -> bool:
        """Delete a reminder by ID. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted reminder %d", reminder_id)
            return deleted
        finally:
            await db.close()

    async def delete_auto_extracted_by_source_ref(self, source_ref: str) -> int:
        """Remove auto-extracted reminders superseded by a new extraction."""
        _require(source_ref, "source_ref")
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM reminders WHERE source_ref = ? AND source = ?",
                (source_ref, ReminderSource.AUTO_EXTRACTED.value),
            )
            await db.commit()
            logger.info(
                "Deleted %d auto-extracted reminder(s) for source %s",
                cursor.rowcount,
                source_ref,
            )
            return cursor.rowcount
        finally:
            await db.close()
