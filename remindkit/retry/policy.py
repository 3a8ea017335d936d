"""RetryPolicy — fixed-interval backoff bounded by attempt count and duration.

The intent is "keep trying until the source recovers or a deadline passes",
so the delay between attempts never grows.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from typing import TYPE_CHECKING

from remindkit.retry.models import RetryAttempt
from remindkit.timeutil import align

if TYPE_CHECKING:
    from datetime import datetime

    from remindkit.config import Settings
    from remindkit.retry.models import SubjectKey


@dataclass(frozen=True)
class RetryPolicy:
    """Pure retry arithmetic; persistence lives in :class:`RetryTracker`.

    Args:
        interval: Fixed delay between attempts.
        max_duration: Give up once this much time has passed since the first
            attempt.
        max_attempts: Give up once this many attempts were recorded. Defaults
            to the number of intervals that fit in *max_duration*.
    """

    interval: timedelta = timedelta(hours=1)
    max_duration: timedelta = timedelta(hours=48)
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.interval <= timedelta(0):
            msg = "interval must be positive"
            raise ValueError(msg)
        if self.max_attempts is None:
            object.__setattr__(
                self, "max_attempts", max(1, int(self.max_duration / self.interval))
            )
        elif self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            interval=timedelta(hours=settings.retry_interval_hours),
            max_duration=timedelta(hours=settings.max_retry_duration_hours),
            max_attempts=settings.get_max_retry_attempts(),
        )

    @classmethod
    def for_hours(cls, interval_hours: int, max_hours: int) -> RetryPolicy:
        """Policy matching a task definition's retry knobs."""
        return cls(
            interval=timedelta(hours=interval_hours), max_duration=timedelta(hours=max_hours)
        )

    @classmethod
    def for_attempt(cls, attempt: RetryAttempt) -> RetryPolicy:
        """The policy a subject was started under, rebuilt from its record."""
        return cls(
            interval=attempt.interval,
            max_duration=attempt.max_duration,
            max_attempts=attempt.max_attempts,
        )

    def start(self, subject: SubjectKey, now: datetime) -> RetryAttempt:
        """State after the first failure of *subject*."""
        return RetryAttempt(
            subject=subject,
            attempt_count=1,
            first_attempt=now,
            last_attempt=now,
            next_attempt=now + self.interval,
            max_attempts=self.max_attempts,
            interval=self.interval,
            max_duration=self.max_duration,
        )

    def record_attempt(self, attempt: RetryAttempt, now: datetime) -> RetryAttempt:
        """State after one more failed attempt."""
        return replace(
            attempt,
            attempt_count=attempt.attempt_count + 1,
            last_attempt=now,
            next_attempt=now + self.interval,
        )

    def should_give_up(self, attempt: RetryAttempt, now: datetime) -> bool:
        """True once either the attempt budget or the duration budget is spent."""
        if attempt.attempt_count >= attempt.max_attempts:
            return True
        return now - align(attempt.first_attempt, now) > self.max_duration
