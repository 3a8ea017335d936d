"""Scheduled task system — cron evaluation, persistence, execution, and polling."""

from remindkit.scheduler.actions import ActionRegistry
from remindkit.scheduler.cron import CronEvaluator
from remindkit.scheduler.engine import ExternalFetch, TaskScheduler
from remindkit.scheduler.executor import TaskExecutor
from remindkit.scheduler.missed import missed_by, partition_overdue
from remindkit.scheduler.models import ScheduledTaskDefinition, TaskOutcome
from remindkit.scheduler.ratelimit import ExecutionRateLimiter
from remindkit.scheduler.store import TaskStore

__all__ = [
    "ActionRegistry",
    "CronEvaluator",
    "ExecutionRateLimiter",
    "ExternalFetch",
    "ScheduledTaskDefinition",
    "TaskExecutor",
    "TaskOutcome",
    "TaskScheduler",
    "TaskStore",
    "missed_by",
    "partition_overdue",
]
