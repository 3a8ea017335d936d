"""Error taxonomy for the scheduling, retry, and dispatch engine.

Every error is caught at the boundary of the unit that raised it (one task,
one reminder, one retry subject) and turned into a logged outcome.  None of
them escape into a poll loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remindkit.retry.models import SubjectKey


class SchedulerError(Exception):
    """Base class for all remindkit errors."""


class ConfigurationError(SchedulerError):
    """A task definition cannot be evaluated, e.g. an invalid cron expression."""


class TransientDeliveryError(SchedulerError):
    """A destination failed to accept a reminder. The reminder stays pending."""

    def __init__(self, destination: str, message: str = "") -> None:
        self.destination = destination
        super().__init__(message or f"Delivery to '{destination}' failed")


class TransientFetchError(SchedulerError):
    """An upstream fetch failed and will be retried per the retry policy."""


class TerminalError(SchedulerError):
    """The retry budget for a subject is exhausted."""

    def __init__(self, subject: SubjectKey, attempts: int) -> None:
        self.subject = subject
        self.attempts = attempts
        super().__init__(f"Gave up on {subject} after {attempts} attempt(s)")
