"""ScheduledTaskDefinition data model and task outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from remindkit.scheduler.cron import CronEvaluator


class TaskOutcome(StrEnum):
    """Result of one poll-pass visit to a task, reported via ``on_task_result``."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # previous execution still in flight
    UNRESOLVED = "unresolved"  # no action registered under the task name
    MISCONFIGURED = "misconfigured"  # invalid cron expression


@dataclass
class ScheduledTaskDefinition:
    """A named unit of work that runs on a cron schedule.

    Attributes:
        name: Unique task name; also the key the action registry resolves.
        cron_expression: Five-field cron expression.
        enabled: Disabled tasks are never polled.
        retry_interval_hours: Interval between retries of fetches started by
            this task.
        max_retry_hours: How long those retries may keep going.
        last_run: When the task last ran (set only by the scheduler).
        next_run: Next planned occurrence (set only by the scheduler).
        created_at: ISO 8601 timestamp.
    """

    name: str
    cron_expression: str
    enabled: bool = True
    retry_interval_hours: int = 1
    max_retry_hours: int = 48
    last_run: datetime | None = None
    next_run: datetime | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    def evaluator(self) -> CronEvaluator:
        """Return a (never-raising) evaluator for this task's expression."""
        return CronEvaluator(self.cron_expression)

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``scheduled_tasks`` column order."""
        return (
            self.name,
            self.cron_expression,
            int(self.enabled),
            self.retry_interval_hours,
            self.max_retry_hours,
            _iso(self.last_run),
            _iso(self.next_run),
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduledTaskDefinition:
        """Deserialize from a SQLite row tuple."""
        return cls(
            name=row[0],
            cron_expression=row[1],
            enabled=bool(row[2]),
            retry_interval_hours=row[3],
            max_retry_hours=row[4],
            last_run=_parse(row[5]),
            next_run=_parse(row[6]),
            created_at=row[7],
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
