"""Tests for ReminderStore — aiosqlite CRUD."""

from datetime import date, datetime, time
from pathlib import Path

import pytest

from remindkit.reminders.models import Reminder, ReminderSource
from remindkit.reminders.store import ReminderStore

TODAY = date(2024, 1, 2)


@pytest.fixture
async def store(tmp_path: Path) -> ReminderStore:
    """Create a ReminderStore backed by a temp database."""
    return ReminderStore(db_path=tmp_path / "test.db")


async def _add_auto(store: ReminderStore, source_ref: str = "letter-1", **kwargs) -> Reminder:
    defaults = {
        "text": "Bring packed lunch",
        "remind_date": TODAY,
        "remind_time": time(6, 45),
        "recipient": "emma",
        "source_ref": source_ref,
        "event_type": "excursion",
        "event_title": "Zoo trip",
        "confidence_score": 0.9,
    }
    defaults.update(kwargs)
    return await store.add_auto_reminder(**defaults)


# -- add_reminder --------------------------------------------------------------


async def test_add_reminder_assigns_id(store: ReminderStore) -> None:
    first = await store.add_reminder("Bring gym clothes", TODAY, time(8, 0), "emma")
    second = await store.add_reminder("Library books", TODAY, time(8, 0), "noah")

    assert first.id > 0
    assert second.id > first.id

    fetched = await store.get_reminder(first.id)
    assert fetched is not None
    assert fetched.text == "Bring gym clothes"
    assert fetched.remind_time == time(8, 0)
    assert fetched.recipient == "emma"
    assert fetched.sent is False
    assert fetched.source is ReminderSource.MANUAL


async def test_add_reminder_uses_default_time(store: ReminderStore) -> None:
    reminder = await store.add_reminder("Swimming", TODAY)
    assert reminder.remind_time == time(6, 45)
    assert reminder.is_broadcast


async def test_add_reminder_rejects_blank_text(store: ReminderStore) -> None:
    with pytest.raises(ValueError, match="text"):
        await store.add_reminder("  ", TODAY, time(8, 0))


async def test_get_reminder_not_found(store: ReminderStore) -> None:
    assert await store.get_reminder(999) is None


# -- add_auto_reminder ---------------------------------------------------------


async def test_add_auto_reminder(store: ReminderStore) -> None:
    reminder = await _add_auto(store)

    fetched = await store.get_reminder(reminder.id)
    assert fetched.source is ReminderSource.AUTO_EXTRACTED
    assert fetched.source_ref == "letter-1"
    assert fetched.event_type == "excursion"
    assert fetched.event_title == "Zoo trip"
    assert fetched.confidence_score == pytest.approx(0.9)


@pytest.mark.parametrize("score", [0.0, 0.05, 1.01, 2.0])
async def test_add_auto_reminder_rejects_confidence_out_of_range(
    store: ReminderStore, score: float
) -> None:
    with pytest.raises(ValueError, match="confidence_score"):
        await _add_auto(store, confidence_score=score)
    assert await store.list_reminders() == []


@pytest.mark.parametrize("score", [0.1, 1.0])
async def test_add_auto_reminder_accepts_confidence_bounds(
    store: ReminderStore, score: float
) -> None:
    reminder = await _add_auto(store, confidence_score=score)
    assert reminder.confidence_score == score


@pytest.mark.parametrize("field", ["recipient", "source_ref", "event_type", "event_title"])
async def test_add_auto_reminder_requires_fields(store: ReminderStore, field: str) -> None:
    with pytest.raises(ValueError, match=field):
        await _add_auto(store, **{field: ""})


# -- list_reminders / list_pending ---------------------------------------------


async def test_list_reminders_newest_first(store: ReminderStore) -> None:
    await store.add_reminder("early", TODAY, time(7, 0))
    await store.add_reminder("tomorrow", date(2024, 1, 3), time(6, 0))
    await store.add_reminder("late", TODAY, time(20, 0))

    texts = [r.text for r in await store.list_reminders()]
    assert texts == ["tomorrow", "late", "early"]


async def test_list_pending_oldest_first_and_due_only(store: ReminderStore) -> None:
    await store.add_reminder("now", TODAY, time(8, 5))
    await store.add_reminder("future", TODAY, time(8, 6))
    await store.add_reminder("yesterday", date(2024, 1, 1), time(22, 0))
    await store.add_reminder("earlier", TODAY, time(8, 0))

    pending = await store.list_pending(datetime(2024, 1, 2, 8, 5, 30))
    assert [r.text for r in pending] == ["yesterday", "earlier", "now"]


async def test_list_pending_excludes_sent(store: ReminderStore) -> None:
    reminder = await store.add_reminder("done", TODAY, time(8, 0))
    await store.mark_sent(reminder.id)

    assert await store.list_pending(datetime(2024, 1, 2, 9, 0)) == []
    # Sent reminders stay in the history.
    assert len(await store.list_reminders()) == 1


# -- mark_sent / delete --------------------------------------------------------


async def test_mark_sent_only_once(store: ReminderStore) -> None:
    reminder = await store.add_reminder("once", TODAY, time(8, 0))

    assert await store.mark_sent(reminder.id) is True
    assert await store.mark_sent(reminder.id) is False
    assert (await store.get_reminder(reminder.id)).sent is True


async def test_mark_sent_unknown(store: ReminderStore) -> None:
    assert await store.mark_sent(42) is False


async def test_delete_reminder(store: ReminderStore) -> None:
    reminder = await store.add_reminder("gone", TODAY, time(8, 0))

    assert await store.delete_reminder(reminder.id) is True
    assert await store.delete_reminder(reminder.id) is False
    assert await store.get_reminder(reminder.id) is None


async def test_delete_auto_extracted_by_source_ref(store: ReminderStore) -> None:
    await _add_auto(store, "letter-1", text="one")
    await _add_auto(store, "letter-1", text="two")
    await _add_auto(store, "letter-2", text="other letter")
    await store.add_reminder("manual", TODAY, time(8, 0), "emma")

    assert await store.delete_auto_extracted_by_source_ref("letter-1") == 2

    texts = sorted(r.text for r in await store.list_reminders())
    assert texts == ["manual", "other letter"]
