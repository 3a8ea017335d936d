"""Retry bookkeeping — policy, persistence, and tracking."""

from remindkit.retry.models import RetryAttempt, RetryDecision, SubjectKey
from remindkit.retry.policy import RetryPolicy
from remindkit.retry.store import RetryStore
from remindkit.retry.tracker import RetryTracker

__all__ = [
    "RetryAttempt",
    "RetryDecision",
    "RetryPolicy",
    "RetryStore",
    "RetryTracker",
    "SubjectKey",
]
