"""Shared test fixtures."""

import pytest

from remindkit.notifications.router import DispatchRouter
from remindkit.reminders.store import ReminderStore
from remindkit.retry.store import RetryStore
from remindkit.scheduler.store import TaskStore


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Make sure no test sees another test's shared stores or router."""
    for cls in (TaskStore, ReminderStore, RetryStore, DispatchRouter):
        cls._reset()
    yield
    for cls in (TaskStore, ReminderStore, RetryStore, DispatchRouter):
        cls._reset()
