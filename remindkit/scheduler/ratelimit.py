"""ExecutionRateLimiter — caps how often a task name may execute."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from remindkit.timeutil import align, floor_minute

if TYPE_CHECKING:
    from remindkit.config import Settings

logger = logging.getLogger(__name__)

_WINDOW = timedelta(hours=1)


class ExecutionRateLimiter:
    """Sliding-window limit on executions per task name.

    Executions are counted in whole minutes, so a task polled a few seconds
    late in consecutive minutes is never mistaken for a rapid repeat.

    Args:
        max_per_hour: Executions allowed for one name in any sliding hour.
        min_gap: Minimum spacing between two executions of the same name.
    """

    def __init__(self, max_per_hour: int = 60, min_gap: timedelta = timedelta(minutes=1)) -> None:
        if max_per_hour < 1:
            msg = f"max_per_hour must be at least 1, got {max_per_hour}"
            raise ValueError(msg)
        self._max_per_hour = max_per_hour
        self._min_gap = min_gap
        self._history: dict[str, deque[datetime]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> ExecutionRateLimiter:
        return cls(max_per_hour=settings.max_task_executions_per_hour)

    def allow(self, name: str, now: datetime) -> bool:
        """True when *name* may execute at *now*. Logs a warning when not."""
        history = self._history.get(name)
        if not history:
            return True
        slot = floor_minute(now)
        self._prune(history, slot)

        if history and slot - align(history[-1], slot) < self._min_gap:
            logger.warning("Task '%s' executed too recently; skipping", name)
            return False
        if len(history) >= self._max_per_hour:
            logger.warning(
                "Task '%s' hit its hourly execution limit (%d/%d); skipping",
                name,
                len(history),
                self._max_per_hour,
            )
            return False
        return True

    def record(self, name: str, now: datetime) -> None:
        """Count one execution of *name* at *now*."""
        slot = floor_minute(now)
        history = self._history.setdefault(name, deque())
        history.append(slot)
        self._prune(history, slot)

    def count(self, name: str, now: datetime) -> int:
        """Executions of *name* inside the hour ending at *now*."""
        history = self._history.get(name)
        if not history:
            return 0
        slot = floor_minute(now)
        self._prune(history, slot)
        return len(history)

    @staticmethod
    def _prune(history: deque[datetime], slot: datetime) -> None:
        cutoff = slot - _WINDOW
        while history and align(history[0], slot) <= cutoff:
            history.popleft()
