"""Tests for missed reminder detection."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from remindkit.reminders.models import Reminder
from remindkit.scheduler.missed import missed_by, partition_overdue

GRACE = timedelta(minutes=5)


def _reminder(hour: int, minute: int, text: str = "x") -> Reminder:
    return Reminder(text=text, remind_date=date(2024, 1, 2), remind_time=time(hour, minute))


def test_within_grace_is_not_missed() -> None:
    assert missed_by(_reminder(8, 0), datetime(2024, 1, 2, 8, 5), GRACE) is None


def test_beyond_grace_reports_lateness() -> None:
    assert missed_by(_reminder(8, 0), datetime(2024, 1, 2, 9, 0), GRACE) == timedelta(hours=1)


def test_uses_local_wall_clock() -> None:
    now = datetime(2024, 1, 2, 8, 3, tzinfo=ZoneInfo("Europe/Copenhagen"))
    assert missed_by(_reminder(8, 0), now, GRACE) is None


def test_partition_overdue() -> None:
    late = _reminder(7, 0, "late")
    fresh = _reminder(8, 58, "fresh")

    missed, on_time = partition_overdue([late, fresh], datetime(2024, 1, 2, 9, 0), GRACE)

    assert missed == [(late, timedelta(hours=2))]
    assert on_time == [fresh]
