"""Missed reminder detection — reminders overdue beyond the grace window."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime, timedelta

    from remindkit.reminders.models import Reminder

logger = logging.getLogger(__name__)


def missed_by(reminder: Reminder, now: datetime, grace: timedelta) -> timedelta | None:
    """How late *reminder* is, if it is late by more than *grace*; else None."""
    lateness = now.replace(tzinfo=None) - reminder.due_at()
    if lateness > grace:
        return lateness
    return None


def partition_overdue(
    reminders: list[Reminder], now: datetime, grace: timedelta
) -> tuple[list[tuple[Reminder, timedelta]], list[Reminder]]:
    """Split due reminders into ``(missed, on_time)``.

    Missed entries carry their lateness so the delivered message can say how
    long ago the reminder was meant to go out.
    """
    missed: list[tuple[Reminder, timedelta]] = []
    on_time: list[Reminder] = []
    for reminder in reminders:
        lateness = missed_by(reminder, now, grace)
        if lateness is None:
            on_time.append(reminder)
        else:
            missed.append((reminder, lateness))
    if missed:
        logger.info("Found %d missed reminder(s)", len(missed))
    return missed, on_time
