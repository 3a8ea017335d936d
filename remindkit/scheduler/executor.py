"""TaskExecutor — runs a due task's action at most once at a time per name."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from remindkit.config import settings
from remindkit.scheduler.hooks import call_hook
from remindkit.scheduler.models import TaskOutcome

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from remindkit.errors import ConfigurationError
    from remindkit.scheduler.actions import ActionRegistry
    from remindkit.scheduler.cron import CronEvaluator
    from remindkit.scheduler.models import ScheduledTaskDefinition
    from remindkit.scheduler.ratelimit import ExecutionRateLimiter
    from remindkit.scheduler.store import TaskStore

logger = logging.getLogger(__name__)


class TaskExecutor:
    """Executes scheduled tasks by resolving their action through a registry.

    Args:
        actions: ActionRegistry that maps task names to callables.
        store: TaskStore for recording last_run / next_run.
        on_task_result: Optional hook ``(task_name, outcome)`` called after
            every visit that did something (ran, failed, skipped, ...).
        config_log_interval: Minimum gap between WARNING logs for the same
            misconfigured task; repeats in between go to DEBUG.
        rate_limiter: Optional ExecutionRateLimiter; occurrences it refuses
            are skipped like in-flight ones.
    """

    def __init__(
        self,
        actions: ActionRegistry,
        store: TaskStore,
        *,
        on_task_result: Callable[[str, TaskOutcome], Any] | None = None,
        config_log_interval: timedelta | None = None,
        rate_limiter: ExecutionRateLimiter | None = None,
    ) -> None:
        self._actions = actions
        self._store = store
        self._on_task_result = on_task_result
        self._rate_limiter = rate_limiter
        self._config_log_interval = config_log_interval or timedelta(
            minutes=settings.invalid_cron_log_interval_minutes
        )
        self._running: set[str] = set()
        self._config_logged_at: dict[str, datetime] = {}

    @property
    def in_flight(self) -> frozenset[str]:
        """Names of tasks whose action is currently executing."""
        return frozenset(self._running)

    async def run_if_due(self, task: ScheduledTaskDefinition, now: datetime) -> TaskOutcome | None:
        """Execute *task* if its schedule says so. Returns None when not due."""
        evaluator = task.evaluator()
        if not evaluator.valid:
            await self._report_misconfigured(task, evaluator.error, now)
            return TaskOutcome.MISCONFIGURED
        if not evaluator.should_run(task.last_run, now):
            return None
        return await self.execute(task, now, evaluator)

    async def execute(
        self,
        task: ScheduledTaskDefinition,
        now: datetime,
        evaluator: CronEvaluator | None = None,
    ) -> TaskOutcome:
        """Run *task*'s action and record the run, whatever the outcome.

        If the same task name is already executing, this occurrence is
        skipped and nothing is recorded.
        """
        if task.name in self._running:
            logger.info("Skipping task '%s': previous execution still in flight", task.name)
            await call_hook(self._on_task_result, task.name, TaskOutcome.SKIPPED)
            return TaskOutcome.SKIPPED
        if self._rate_limiter is not None:
            if not self._rate_limiter.allow(task.name, now):
                await call_hook(self._on_task_result, task.name, TaskOutcome.SKIPPED)
                return TaskOutcome.SKIPPED
            self._rate_limiter.record(task.name, now)

        evaluator = evaluator or task.evaluator()
        self._running.add(task.name)
        try:
            outcome = await self._invoke(task)
        finally:
            try:
                await self._store.record_run(task.name, now, evaluator.next_occurrence(now))
            except Exception:
                logger.exception("Failed to record run of task '%s'", task.name)
            self._running.discard(task.name)

        await call_hook(self._on_task_result, task.name, outcome)
        return outcome

    async def _invoke(self, task: ScheduledTaskDefinition) -> TaskOutcome:
        action = self._actions.resolve(task.name)
        if action is None:
            logger.warning("No action registered for task '%s'; skipping", task.name)
            return TaskOutcome.UNRESOLVED

        logger.info("Executing task: '%s' (%s)", task.name, task.cron_expression)
        try:
            if inspect.iscoroutinefunction(action):
                await action(task)
            else:
                result = await asyncio.to_thread(action, task)
                if inspect.isawaitable(result):
                    await result
        except Exception:
            logger.exception("Task execution failed: '%s'", task.name)
            return TaskOutcome.FAILED

        logger.info("Task executed successfully: '%s'", task.name)
        return TaskOutcome.SUCCEEDED

    async def _report_misconfigured(
        self,
        task: ScheduledTaskDefinition,
        error: ConfigurationError | None,
        now: datetime,
    ) -> None:
        last = self._config_logged_at.get(task.name)
        if last is not None and now - last < self._config_log_interval:
            logger.debug("Task '%s' still misconfigured: %s", task.name, error)
        else:
            self._config_logged_at[task.name] = now
            logger.warning(
                "Task '%s' skipped: invalid cron expression '%s' (%s)",
                task.name,
                task.cron_expression,
                error,
            )
        await call_hook(self._on_task_result, task.name, TaskOutcome.MISCONFIGURED)
