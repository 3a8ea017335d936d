"""remindkit entry point."""

import asyncio
import logging

from remindkit.config import settings
from remindkit.notifications import DispatchRouter, LogChannel
from remindkit.reminders import ReminderStore
from remindkit.retry import RetryPolicy, RetryStore, RetryTracker
from remindkit.scheduler import (
    ActionRegistry,
    ExecutionRateLimiter,
    TaskExecutor,
    TaskScheduler,
    TaskStore,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_scheduler(actions: ActionRegistry | None = None) -> TaskScheduler:
    """Wire stores, router and executor from settings.

    Broadcast reminders go to a LogChannel; register real channels on
    ``DispatchRouter.get().channels`` before starting to add more.
    """
    router = DispatchRouter.get()
    if "log" not in router.channels.list_channels():
        router.channels.register_channel(LogChannel())

    task_store = TaskStore.get()
    executor = TaskExecutor(
        actions or ActionRegistry(),
        task_store,
        rate_limiter=ExecutionRateLimiter.from_settings(settings),
    )
    tracker = RetryTracker(RetryStore.get(), RetryPolicy.from_settings(settings))
    return TaskScheduler(
        task_store,
        executor,
        ReminderStore.get(),
        router,
        retries=tracker,
    )


async def run() -> None:
    """Start the scheduler and keep it running until cancelled."""
    scheduler = build_scheduler()
    await scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main() -> None:
    """Run the scheduler service until interrupted."""
    logger.info(
        "Starting remindkit (db=%s, tz=%s)", settings.database_path, settings.scheduler_timezone
    )
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
