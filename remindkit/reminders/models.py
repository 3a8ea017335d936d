"""Reminder data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from enum import StrEnum

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0


class ReminderSource(StrEnum):
    """Where a reminder came from."""

    MANUAL = "manual"
    AUTO_EXTRACTED = "auto_extracted"
    SCHEDULE_CONFLICT = "schedule_conflict"


@dataclass
class Reminder:
    """A message to deliver at a given local date and time.

    Attributes:
        id: Store-assigned integer ID (0 until inserted).
        text: Message body.
        remind_date: Local date to deliver on.
        remind_time: Local time of day to deliver at.
        recipient: Recipient ID, or None for a broadcast to every destination.
        sent: Flipped to True exactly once, after confirmed delivery.
        source: How the reminder was created.
        source_ref: ID of the source record it was extracted from.
        event_type: Free-form event category (e.g. ``"excursion"``).
        event_title: Short event title from extraction.
        confidence_score: Extraction confidence in [0.1, 1.0].
        created_at: ISO 8601 timestamp.
    """

    text: str
    remind_date: date
    remind_time: time
    recipient: str | None = None
    id: int = 0
    sent: bool = False
    source: ReminderSource = ReminderSource.MANUAL
    source_ref: str | None = None
    event_type: str | None = None
    event_title: str | None = None
    confidence_score: float | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        self.source = ReminderSource(self.source)
        if self.confidence_score is not None and not (
            MIN_CONFIDENCE <= self.confidence_score <= MAX_CONFIDENCE
        ):
            msg = (
                f"confidence_score must be between {MIN_CONFIDENCE} and {MAX_CONFIDENCE},"
                f" got {self.confidence_score}"
            )
            raise ValueError(msg)

    @property
    def is_broadcast(self) -> bool:
        return not self.recipient

    def due_at(self) -> datetime:
        """Naive local datetime the reminder is due."""
        return datetime.combine(self.remind_date, self.remind_time)

    def is_due(self, now: datetime) -> bool:
        """Compare on local wall-clock date and time, ignoring tzinfo."""
        return self.due_at() <= now.replace(tzinfo=None)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the insert column order (no id)."""
        return (
            self.text,
            self.remind_date.isoformat(),
            self.remind_time.isoformat(timespec="minutes"),
            self.recipient,
            int(self.sent),
            self.source.value,
            self.source_ref,
            self.event_type,
            self.event_title,
            self.confidence_score,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Reminder:
        """Deserialize from a SQLite row tuple (id first)."""
        return cls(
            id=row[0],
            text=row[1],
            remind_date=date.fromisoformat(row[2]),
            remind_time=time.fromisoformat(row[3]),
            recipient=row[4],
            sent=bool(row[5]),
            source=ReminderSource(row[6]),
            source_ref=row[7],
            event_type=row[8],
            event_title=row[9],
            confidence_score=row[10],
            created_at=row[11],
        )
