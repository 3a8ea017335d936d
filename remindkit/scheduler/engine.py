"""TaskScheduler — poll loops for tasks, reminders, and retry subjects."""

from __future__ import annotations

import asyncio
import functools
import logging
import zoneinfo
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from remindkit.config import settings
from remindkit.errors import TransientFetchError
from remindkit.retry.models import RetryDecision
from remindkit.retry.policy import RetryPolicy
from remindkit.scheduler.hooks import call_hook
from remindkit.scheduler.missed import partition_overdue

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from remindkit.notifications.router import DispatchRouter
    from remindkit.reminders.models import Reminder
    from remindkit.reminders.store import ReminderStore
    from remindkit.retry.models import RetryAttempt, SubjectKey
    from remindkit.retry.tracker import RetryTracker
    from remindkit.scheduler.executor import TaskExecutor
    from remindkit.scheduler.models import ScheduledTaskDefinition, TaskOutcome
    from remindkit.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

_STOP_TIMEOUT_SECONDS = 30.0


def _log_unit_error(task_name: str, unit: asyncio.Task) -> None:
    if unit.cancelled():
        return
    exc = unit.exception()
    if exc is not None:
        logger.error("Task '%s' raised outside its boundary: %r", task_name, exc)


class ExternalFetch(Protocol):
    """The retryable operation re-invoked for due retry subjects."""

    async def attempt(self, subject: SubjectKey) -> bool:
        """Try once. True on success; False or an exception means failure."""
        ...


class TaskScheduler:
    """Polls stores on independent timers and executes whatever is due.

    Args:
        tasks: TaskStore with cron task definitions.
        executor: TaskExecutor that runs task actions.
        reminders: ReminderStore with pending reminders.
        router: DispatchRouter that delivers ready reminders.
        retries: RetryTracker for failed fetches (optional).
        fetch: ExternalFetch re-invoked for due retry subjects (optional).
        timezone: IANA timezone for the clock and timers (default from settings).
        clock: Callable returning "now"; defaults to the wall clock in *timezone*.
        on_retry_started: Hook ``(subject, attempt)`` fired on a subject's
            first failure.
        on_retry_gave_up: Hook ``(subject, attempt)`` fired when a subject
            exhausts its retry budget.
    """

    def __init__(
        self,
        tasks: TaskStore,
        executor: TaskExecutor,
        reminders: ReminderStore,
        router: DispatchRouter,
        *,
        retries: RetryTracker | None = None,
        fetch: ExternalFetch | None = None,
        timezone: str | None = None,
        clock: Callable[[], datetime] | None = None,
        on_retry_started: Callable[[SubjectKey, RetryAttempt], Any] | None = None,
        on_retry_gave_up: Callable[[SubjectKey, RetryAttempt], Any] | None = None,
    ) -> None:
        self._tasks = tasks
        self._executor = executor
        self._reminders = reminders
        self._router = router
        self._retries = retries
        self._fetch = fetch
        self._timezone = timezone or settings.scheduler_timezone
        self._clock = clock or self._wall_clock
        self._on_retry_started = on_retry_started
        self._on_retry_gave_up = on_retry_gave_up
        self._grace = timedelta(minutes=settings.missed_reminder_grace_minutes)

        self._scheduler: AsyncIOScheduler | None = None
        self._running = False
        self._active: set[asyncio.Task] = set()
        self._reminders_in_flight: set[int] = set()
        self._subjects_in_flight: set[SubjectKey] = set()

    @property
    def running(self) -> bool:
        return self._running

    def _wall_clock(self) -> datetime:
        return datetime.now(zoneinfo.ZoneInfo(self._timezone))

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the three poll timers and kick off missed-reminder catch-up."""
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._add_poll_job("poll-tasks", self._tick_tasks, settings.task_poll_interval_seconds)
        self._add_poll_job(
            "poll-reminders", self._tick_reminders, settings.reminder_poll_interval_seconds
        )
        self._add_poll_job(
            "poll-retries", self._tick_retries, settings.retry_poll_interval_seconds
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started (tz=%s, tasks every %ds, reminders every %ds)",
            self._timezone,
            settings.task_poll_interval_seconds,
            settings.reminder_poll_interval_seconds,
        )

        self._spawn(self._startup_catch_up())

    async def stop(self, timeout: float = _STOP_TIMEOUT_SECONDS) -> None:
        """Stop new ticks, let in-flight units finish, release subscriptions."""
        if not self._running:
            return
        self._running = False
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        # A dispatch pass that was mid-flight may spawn more units, so re-check.
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        current = asyncio.current_task()
        while pending := {t for t in self._active if t is not current and not t.done()}:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "%d unit(s) still running after %.0fs; abandoning them",
                    len(pending),
                    timeout,
                )
                break
            logger.info("Waiting for %d in-flight unit(s) to finish", len(pending))
            await asyncio.wait(pending, timeout=remaining)

        self._router.close()
        logger.info("Scheduler stopped")

    def _add_poll_job(self, job_id: str, func: Callable[[], Coroutine], seconds: int) -> None:
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds, timezone=self._timezone),
            id=job_id,
            name=job_id,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._active.add(task)
        task.add_done_callback(self._active.discard)
        return task

    async def _tick(self, coro: Coroutine) -> None:
        """Run one poll pass as a tracked unit; never lets an error escape."""
        if not self._running:
            coro.close()
            return
        task = self._spawn(coro)
        try:
            await task
        except Exception:
            logger.exception("Unhandled error in poll pass")

    async def _tick_tasks(self) -> None:
        await self._tick(self.dispatch_tasks(self._clock()))

    async def _tick_reminders(self) -> None:
        await self._tick(self.poll_reminders(self._clock()))

    async def _tick_retries(self) -> None:
        await self._tick(self.poll_retries(self._clock()))

    async def _startup_catch_up(self) -> None:
        try:
            await self.catch_up_missed_reminders(self._clock())
        except Exception:
            logger.exception("Error checking for missed reminders on startup")

    # -- Tasks -----------------------------------------------------------------

    async def dispatch_tasks(self, now: datetime) -> list[tuple[str, asyncio.Task]]:
        """Start a tracked unit per enabled task and return without waiting.

        Each unit checks due-ness and runs the action, so a slow action never
        holds up the timer; the executor skips a name that is still in flight.
        """
        try:
            tasks = await self._tasks.list_enabled_tasks()
        except Exception:
            logger.exception("Failed to load scheduled tasks")
            return []

        dispatched = []
        for task in tasks:
            unit = self._spawn(self._executor.run_if_due(task, now))
            unit.add_done_callback(functools.partial(_log_unit_error, task.name))
            dispatched.append((task.name, unit))
        return dispatched

    async def poll_once(self, now: datetime) -> list[tuple[str, TaskOutcome]]:
        """Run every enabled task that is due at *now* and wait for them.

        Returns ``(task_name, outcome)`` for each task that was visited; tasks
        that were not due are left out.
        """
        dispatched = await self.dispatch_tasks(now)
        if not dispatched:
            return []
        results = await asyncio.gather(*(unit for _, unit in dispatched), return_exceptions=True)
        return [
            (name, result)
            for (name, _), result in zip(dispatched, results, strict=True)
            if result is not None and not isinstance(result, BaseException)
        ]

    # -- Reminders -------------------------------------------------------------

    async def poll_reminders(self, now: datetime) -> int:
        """Deliver every pending reminder due at or before *now*.

        Reminders overdue beyond the grace window are delivered as missed.
        Returns the number of reminders delivered and marked sent.
        """
        try:
            pending = await self._reminders.list_pending(now)
        except Exception:
            logger.exception("Failed to load pending reminders")
            return 0
        if not pending:
            return 0

        logger.info("Found %d pending reminder(s)", len(pending))
        missed, on_time = partition_overdue(pending, now, self._grace)
        results = await asyncio.gather(
            *(self._deliver_reminder(r, lateness) for r, lateness in missed),
            *(self._deliver_reminder(r, None) for r in on_time),
        )
        return sum(results)

    async def catch_up_missed_reminders(self, now: datetime) -> int:
        """Deliver only the reminders that are overdue beyond the grace window.

        Runs at startup so that reminders due while the scheduler was down go
        out as "missed" instead of being dropped.
        """
        try:
            pending = await self._reminders.list_pending(now)
        except Exception:
            logger.exception("Failed to load pending reminders for catch-up")
            return 0

        missed, _ = partition_overdue(pending, now, self._grace)
        if not missed:
            logger.info("No missed reminders found")
            return 0
        results = await asyncio.gather(
            *(self._deliver_reminder(r, lateness) for r, lateness in missed)
        )
        return sum(results)

    async def _deliver_reminder(self, reminder: Reminder, lateness: timedelta | None) -> bool:
        """Route one reminder and mark it sent on success. Never raises."""
        if reminder.id in self._reminders_in_flight:
            logger.debug("Reminder %d already being delivered", reminder.id)
            return False
        self._reminders_in_flight.add(reminder.id)
        try:
            # Re-read under the in-flight guard: an overlapping poll may have
            # delivered it after this pass loaded its list.
            current = await self._reminders.get_reminder(reminder.id)
            if current is None or current.sent:
                return False

            if not await self._router.route(current, missed_by=lateness):
                logger.warning(
                    "Reminder %d not delivered; will retry on next poll", reminder.id
                )
                return False

            if not await self._reminders.mark_sent(reminder.id):
                logger.warning("Reminder %d was already marked sent", reminder.id)
                return False
            logger.info(
                "Sent reminder %d to %s: %s",
                reminder.id,
                reminder.recipient or "everyone",
                reminder.text,
            )
            return True
        except Exception:
            logger.exception("Error sending reminder %d", reminder.id)
            return False
        finally:
            self._reminders_in_flight.discard(reminder.id)

    # -- Retries ---------------------------------------------------------------

    async def track_failure(
        self,
        subject: SubjectKey,
        now: datetime | None = None,
        *,
        task: ScheduledTaskDefinition | None = None,
    ) -> RetryDecision:
        """Record that a retryable fetch for *subject* failed.

        Called by task actions on the first failure; creates the retry record
        so :meth:`poll_retries` picks the subject up. When *task* is given its
        retry knobs set the budget of a newly started subject.
        """
        if self._retries is None:
            msg = "TaskScheduler was created without a RetryTracker"
            raise RuntimeError(msg)
        now = now or self._clock()
        policy = None
        if task is not None:
            policy = RetryPolicy.for_hours(task.retry_interval_hours, task.max_retry_hours)
        decision, attempt = await self._retries.record_failure(subject, now, policy=policy)
        await self._emit_retry_decision(subject, decision, attempt)
        return decision

    async def poll_retries(self, now: datetime) -> dict[SubjectKey, RetryDecision | None]:
        """Re-invoke the fetch for every retry subject whose next attempt is due.

        Returns each visited subject mapped to its failure decision, or None
        when the attempt succeeded.
        """
        if self._retries is None or self._fetch is None:
            return {}
        try:
            due = await self._retries.due(now)
        except Exception:
            logger.exception("Failed to load due retry subjects")
            return {}
        if not due:
            return {}

        logger.info("Retrying %d subject(s)", len(due))
        subjects = [a.subject for a in due if a.subject not in self._subjects_in_flight]
        results = await asyncio.gather(*(self._retry_subject(s, now) for s in subjects))
        return {
            subject: decision
            for subject, (visited, decision) in zip(subjects, results, strict=True)
            if visited
        }

    async def _retry_subject(
        self, subject: SubjectKey, now: datetime
    ) -> tuple[bool, RetryDecision | None]:
        self._subjects_in_flight.add(subject)
        try:
            try:
                await self._attempt_fetch(subject)
            except TransientFetchError as exc:
                logger.warning("%s", exc)
                decision, attempt = await self._retries.record_failure(subject, now)
                await self._emit_retry_decision(subject, decision, attempt)
                return True, decision

            await self._retries.record_success(subject)
            logger.info("Fetch for %s succeeded on retry", subject)
            return True, None
        except Exception:
            logger.exception("Error retrying subject %s", subject)
            return False, None
        finally:
            self._subjects_in_flight.discard(subject)

    async def _attempt_fetch(self, subject: SubjectKey) -> None:
        """Run the fetch once. Any failure surfaces as TransientFetchError."""
        try:
            ok = await self._fetch.attempt(subject)
        except TransientFetchError:
            raise
        except Exception as exc:
            msg = f"Fetch for {subject} failed: {exc}"
            raise TransientFetchError(msg) from exc
        if not ok:
            msg = f"Fetch for {subject} reported failure"
            raise TransientFetchError(msg)

    async def _emit_retry_decision(
        self, subject: SubjectKey, decision: RetryDecision, attempt: RetryAttempt
    ) -> None:
        # ALREADY_GAVE_UP emits nothing; the give-up hook fires on the transition only.
        if decision is RetryDecision.STARTED:
            await call_hook(self._on_retry_started, subject, attempt)
        elif decision is RetryDecision.GAVE_UP:
            await call_hook(self._on_retry_gave_up, subject, attempt)
