"""RetryTracker — applies a RetryPolicy to persisted retry state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remindkit.errors import TerminalError
from remindkit.retry.models import RetryDecision
from remindkit.retry.policy import RetryPolicy

if TYPE_CHECKING:
    from datetime import datetime

    from remindkit.retry.models import RetryAttempt, SubjectKey
    from remindkit.retry.store import RetryStore

logger = logging.getLogger(__name__)


class RetryTracker:
    """Records failures and successes for retry subjects.

    Args:
        store: RetryStore holding attempt records.
        policy: RetryPolicy deciding next attempts and give-up.
    """

    def __init__(self, store: RetryStore, policy: RetryPolicy) -> None:
        self._store = store
        self._policy = policy

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def record_failure(
        self, subject: SubjectKey, now: datetime, *, policy: RetryPolicy | None = None
    ) -> tuple[RetryDecision, RetryAttempt]:
        """Count one failed attempt for *subject* and decide what happens next.

        The first failure creates the record (``STARTED``). Later failures
        bump the count (``RETRYING``) until the policy gives up, which is
        terminal (``GAVE_UP``): the record keeps no next attempt and further
        failures leave it untouched and return ``ALREADY_GAVE_UP``.

        *policy* overrides the default budget for a newly started subject;
        an existing subject keeps the budget it was started with.
        """
        existing = await self._store.get_attempt(subject)

        if existing is not None and existing.is_successful:
            # A new failure after success starts a fresh retry cycle.
            await self._store.delete(subject)
            existing = None

        if existing is None:
            start_policy = policy or self._policy
            attempt = start_policy.start(subject, now)
            if await self._store.insert(attempt):
                logger.warning(
                    "Retry started for %s: next attempt at %s (max %d attempts)",
                    subject,
                    attempt.next_attempt,
                    attempt.max_attempts,
                )
                if start_policy.should_give_up(attempt, now):
                    return await self._give_up(subject, attempt)
                return RetryDecision.STARTED, attempt
            # Another writer created it first; fall through to increment.
            existing = await self._store.get_attempt(subject)
            if existing is None:
                msg = f"Retry record for {subject} vanished during insert"
                raise RuntimeError(msg)

        if existing.gave_up:
            logger.debug("Ignoring failure for given-up subject %s", subject)
            return RetryDecision.ALREADY_GAVE_UP, existing

        subject_policy = RetryPolicy.for_attempt(existing)
        projected = subject_policy.record_attempt(existing, now)
        await self._store.increment(subject, now, projected.next_attempt)
        current = await self._store.get_attempt(subject) or projected

        if subject_policy.should_give_up(current, now):
            return await self._give_up(subject, current)

        logger.warning(
            "Retry %d/%d failed for %s: next attempt at %s",
            current.attempt_count,
            current.max_attempts,
            subject,
            current.next_attempt,
        )
        return RetryDecision.RETRYING, current

    async def record_success(self, subject: SubjectKey) -> bool:
        """Mark *subject* successful. Idempotent; returns False on repeat calls."""
        return await self._store.mark_successful(subject)

    async def due(self, now: datetime) -> list[RetryAttempt]:
        """Subjects whose next attempt has arrived."""
        return await self._store.list_due(now)

    async def _give_up(
        self, subject: SubjectKey, attempt: RetryAttempt
    ) -> tuple[RetryDecision, RetryAttempt]:
        await self._store.mark_gave_up(subject)
        attempt.gave_up = True
        attempt.next_attempt = None
        logger.error(
            "%s (first attempt %s)",
            TerminalError(subject, attempt.attempt_count),
            attempt.first_attempt.isoformat(),
        )
        return RetryDecision.GAVE_UP, attempt
