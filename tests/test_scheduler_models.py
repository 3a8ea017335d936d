"""Tests for ScheduledTaskDefinition and TaskOutcome."""

from datetime import datetime

from remindkit.scheduler.models import ScheduledTaskDefinition, TaskOutcome


def test_defaults() -> None:
    task = ScheduledTaskDefinition(name="Daily9AM", cron_expression="0 9 * * *")
    assert task.enabled is True
    assert task.retry_interval_hours == 1
    assert task.max_retry_hours == 48
    assert task.last_run is None
    assert task.next_run is None
    assert task.created_at  # auto-filled


def test_row_round_trip_keeps_run_times() -> None:
    task = ScheduledTaskDefinition(
        name="WeeklyLetterCheck",
        cron_expression="0 7 * * mon",
        enabled=False,
        retry_interval_hours=2,
        max_retry_hours=24,
        last_run=datetime(2024, 1, 1, 7, 0, 12),
        next_run=datetime(2024, 1, 8, 7, 0),
        created_at="2024-01-01T00:00:00",
    )
    restored = ScheduledTaskDefinition.from_row(task.to_row())
    assert restored == task


def test_evaluator_does_not_raise_for_bad_cron() -> None:
    task = ScheduledTaskDefinition(name="Broken", cron_expression="not a cron")
    assert task.evaluator().valid is False


def test_outcome_values() -> None:
    assert {o.value for o in TaskOutcome} == {
        "succeeded",
        "failed",
        "skipped",
        "unresolved",
        "misconfigured",
    }
