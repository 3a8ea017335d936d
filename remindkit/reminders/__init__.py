"""Reminder model and persistence."""

from remindkit.reminders.models import Reminder, ReminderSource
from remindkit.reminders.store import ReminderStore

__all__ = ["Reminder", "ReminderSource", "ReminderStore"]
