"""Tests for TaskStore — aiosqlite CRUD."""

import sqlite3
from datetime import datetime
from pathlib import Path

import pytest

from remindkit.errors import ConfigurationError
from remindkit.scheduler.models import ScheduledTaskDefinition
from remindkit.scheduler.store import TaskStore


@pytest.fixture
async def store(tmp_path: Path) -> TaskStore:
    """Create a TaskStore backed by a temp database."""
    return TaskStore(db_path=tmp_path / "test.db")


def _make_task(name: str = "Daily9AM", cron: str = "0 9 * * *", **kwargs) -> ScheduledTaskDefinition:
    kwargs.setdefault("created_at", "2024-01-01T00:00:00")
    return ScheduledTaskDefinition(name=name, cron_expression=cron, **kwargs)


# -- add_task / get_task -------------------------------------------------------


async def test_add_and_get_task(store: TaskStore) -> None:
    await store.add_task(_make_task(retry_interval_hours=2, max_retry_hours=12))

    fetched = await store.get_task("Daily9AM")
    assert fetched is not None
    assert fetched.cron_expression == "0 9 * * *"
    assert fetched.enabled is True
    assert fetched.retry_interval_hours == 2
    assert fetched.max_retry_hours == 12
    assert fetched.last_run is None


async def test_get_task_not_found(store: TaskStore) -> None:
    assert await store.get_task("nonexistent") is None


async def test_add_task_rejects_invalid_cron(store: TaskStore) -> None:
    with pytest.raises(ConfigurationError):
        await store.add_task(_make_task(cron="99 * * * *"))
    assert await store.get_task("Daily9AM") is None


async def test_task_names_are_unique(store: TaskStore) -> None:
    await store.add_task(_make_task())
    with pytest.raises(sqlite3.IntegrityError):
        await store.add_task(_make_task(cron="0 10 * * *"))


# -- list_enabled_tasks / set_enabled ------------------------------------------


async def test_list_enabled_excludes_disabled(store: TaskStore) -> None:
    await store.add_task(_make_task("a"))
    await store.add_task(_make_task("b", enabled=False))

    names = [t.name for t in await store.list_enabled_tasks()]
    assert names == ["a"]


async def test_set_enabled(store: TaskStore) -> None:
    await store.add_task(_make_task())

    assert await store.set_enabled("Daily9AM", False) is True
    assert await store.list_enabled_tasks() == []

    assert await store.set_enabled("Daily9AM", True) is True
    assert len(await store.list_enabled_tasks()) == 1


async def test_set_enabled_unknown_task(store: TaskStore) -> None:
    assert await store.set_enabled("nope", False) is False


# -- record_run ----------------------------------------------------------------


async def test_record_run_sets_both_times(store: TaskStore) -> None:
    await store.add_task(_make_task())
    now = datetime(2024, 1, 2, 9, 0, 30)

    await store.record_run("Daily9AM", now, datetime(2024, 1, 3, 9, 0))

    fetched = await store.get_task("Daily9AM")
    assert fetched.last_run == now
    assert fetched.next_run == datetime(2024, 1, 3, 9, 0)


async def test_record_run_without_next_run(store: TaskStore) -> None:
    await store.add_task(_make_task())
    await store.record_run("Daily9AM", datetime(2024, 1, 2), None)

    fetched = await store.get_task("Daily9AM")
    assert fetched.last_run == datetime(2024, 1, 2)
    assert fetched.next_run is None
