"""Tests for RetryStore — aiosqlite persistence."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from remindkit.retry.models import RetryAttempt, SubjectKey
from remindkit.retry.policy import RetryPolicy
from remindkit.retry.store import RetryStore

T0 = datetime(2026, 10, 12, 7, 0)


@pytest.fixture
async def store(tmp_path: Path) -> RetryStore:
    return RetryStore(db_path=tmp_path / "test.db")


def _start(recipient: str = "emma", at: datetime = T0, **kwargs) -> RetryAttempt:
    return RetryPolicy(**kwargs).start(SubjectKey(recipient, "2026-W42"), at)


async def test_insert_and_get(store: RetryStore) -> None:
    attempt = _start(interval=timedelta(hours=2), max_duration=timedelta(hours=6))
    assert await store.insert(attempt) is True

    fetched = await store.get_attempt(attempt.subject)
    assert fetched == attempt
    assert fetched.interval == timedelta(hours=2)
    assert fetched.max_attempts == 3


async def test_insert_is_ignored_when_subject_exists(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)

    assert await store.insert(_start(at=T0 + timedelta(hours=1))) is False
    assert (await store.get_attempt(attempt.subject)).first_attempt == T0


async def test_subjects_are_keyed_per_recipient(store: RetryStore) -> None:
    await store.insert(_start("emma"))
    await store.insert(_start("noah"))

    assert await store.get_attempt(SubjectKey("emma", "2026-W42")) is not None
    assert await store.get_attempt(SubjectKey("noah", "2026-W42")) is not None
    assert await store.get_attempt(SubjectKey("emma", "2026-W43")) is None


async def test_increment(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)
    later = T0 + timedelta(hours=1)

    assert await store.increment(attempt.subject, later, later + timedelta(hours=1)) is True

    fetched = await store.get_attempt(attempt.subject)
    assert fetched.attempt_count == 2
    assert fetched.last_attempt == later
    assert fetched.next_attempt == later + timedelta(hours=1)


async def test_increment_ignores_finished_subjects(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)
    await store.mark_gave_up(attempt.subject)

    assert await store.increment(attempt.subject, T0, T0) is False
    assert (await store.get_attempt(attempt.subject)).attempt_count == 1


async def test_mark_successful_is_idempotent(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)

    assert await store.mark_successful(attempt.subject) is True
    assert await store.mark_successful(attempt.subject) is False

    fetched = await store.get_attempt(attempt.subject)
    assert fetched.is_successful is True
    assert fetched.next_attempt is None


async def test_mark_gave_up_clears_next_attempt(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)

    assert await store.mark_gave_up(attempt.subject) is True

    fetched = await store.get_attempt(attempt.subject)
    assert fetched.gave_up is True
    assert fetched.next_attempt is None
    assert not fetched.is_active


async def test_list_due(store: RetryStore) -> None:
    await store.insert(_start("late", at=T0 - timedelta(hours=1)))
    await store.insert(_start("early", at=T0 - timedelta(hours=3)))
    await store.insert(_start("not-yet", at=T0))
    await store.insert(_start("done", at=T0 - timedelta(hours=5)))
    await store.mark_successful(SubjectKey("done", "2026-W42"))

    due = await store.list_due(T0)
    assert [a.subject.recipient for a in due] == ["early", "late"]


async def test_delete(store: RetryStore) -> None:
    attempt = _start()
    await store.insert(attempt)

    assert await store.delete(attempt.subject) is True
    assert await store.delete(attempt.subject) is False
