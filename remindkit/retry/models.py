"""Retry bookkeeping models: subject keys, attempts, and decisions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import StrEnum


@dataclass(frozen=True)
class SubjectKey:
    """What is being retried: a recipient's content for one period.

    ``period`` is an opaque label such as ``"2026-W42"``; the pair is the
    identity, so two recipients never share an attempt record.
    """

    recipient: str
    period: str

    @classmethod
    def for_week(cls, recipient: str, year: int, week: int) -> SubjectKey:
        return cls(recipient=recipient, period=f"{year}-W{week:02d}")

    @classmethod
    def for_iso_week_of(cls, recipient: str, day: date) -> SubjectKey:
        year, week, _ = day.isocalendar()
        return cls.for_week(recipient, year, week)

    def __str__(self) -> str:
        return f"{self.recipient}/{self.period}"


class RetryDecision(StrEnum):
    """What recording a failure led to."""

    STARTED = "started"  # first failure; a retry schedule now exists
    RETRYING = "retrying"
    GAVE_UP = "gave_up"  # this failure exhausted the budget
    ALREADY_GAVE_UP = "already_gave_up"  # subject gave up earlier; nothing changed


@dataclass
class RetryAttempt:
    """Persisted retry state for one subject."""

    subject: SubjectKey
    attempt_count: int
    first_attempt: datetime
    last_attempt: datetime
    next_attempt: datetime | None
    max_attempts: int
    interval: timedelta = timedelta(hours=1)
    max_duration: timedelta = timedelta(hours=48)
    is_successful: bool = False
    gave_up: bool = False

    @property
    def is_active(self) -> bool:
        """Still eligible for polling."""
        return not self.is_successful and not self.gave_up

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``retry_attempts`` column order."""
        return (
            self.subject.recipient,
            self.subject.period,
            self.attempt_count,
            self.first_attempt.isoformat(),
            self.last_attempt.isoformat(),
            self.next_attempt.isoformat() if self.next_attempt else None,
            self.max_attempts,
            int(self.interval.total_seconds()),
            int(self.max_duration.total_seconds()),
            int(self.is_successful),
            int(self.gave_up),
        )

    @classmethod
    def from_row(cls, row: tuple) -> RetryAttempt:
        """Deserialize from a SQLite row tuple."""
        return cls(
            subject=SubjectKey(recipient=row[0], period=row[1]),
            attempt_count=row[2],
            first_attempt=datetime.fromisoformat(row[3]),
            last_attempt=datetime.fromisoformat(row[4]),
            next_attempt=datetime.fromisoformat(row[5]) if row[5] else None,
            max_attempts=row[6],
            interval=timedelta(seconds=row[7]),
            max_duration=timedelta(seconds=row[8]),
            is_successful=bool(row[9]),
            gave_up=bool(row[10]),
        )
