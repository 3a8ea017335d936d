"""Tests for RecipientContext."""

import logging
from datetime import date, time

import pytest

from remindkit.notifications.context import RecipientContext
from remindkit.notifications.registry import ChannelRegistry
from remindkit.notifications.router import DispatchRouter, ReminderReady
from remindkit.reminders.models import Reminder


class FakeChannel:
    def __init__(self, channel_name: str) -> None:
        self._name = channel_name
        self.sent: list[tuple[str | None, str]] = []

    @property
    def name(self) -> str:
        return self._name

    async def send(self, recipient: str | None, message: str) -> bool:
        self.sent.append((recipient, message))
        return True


def _event(recipient: str | None, text: str = "Emma and Noah: swim at 4") -> ReminderReady:
    return ReminderReady(
        Reminder(
            id=7,
            text=text,
            remind_date=date(2024, 1, 2),
            remind_time=time(8, 0),
            recipient=recipient,
        )
    )


@pytest.fixture
def sms() -> FakeChannel:
    return FakeChannel("emma-sms")


@pytest.fixture
def registry(sms: FakeChannel) -> ChannelRegistry:
    reg = ChannelRegistry()
    reg.register_channel(sms)
    reg.assign("emma", "emma-sms")
    return reg


def test_start_is_idempotent(registry: ChannelRegistry) -> None:
    router = DispatchRouter(registry)
    ctx = RecipientContext("emma", registry)

    ctx.start(router)
    ctx.start(router)

    assert ctx.running
    assert router.subscriber_count("emma") == 1


def test_stop_without_start_is_safe(registry: ChannelRegistry) -> None:
    ctx = RecipientContext("emma", registry)
    ctx.stop()
    assert not ctx.running


def test_stop_detaches(registry: ChannelRegistry) -> None:
    router = DispatchRouter(registry)
    ctx = RecipientContext("emma", registry)
    ctx.start(router)

    ctx.stop()
    ctx.stop()

    assert not ctx.running
    assert router.subscriber_count("emma") == 0


def test_start_again_after_router_close(registry: ChannelRegistry) -> None:
    router = DispatchRouter(registry)
    ctx = RecipientContext("emma", registry)
    ctx.start(router)

    router.close()
    assert not ctx.running

    ctx.start(router)
    assert ctx.running
    assert router.subscriber_count("emma") == 1


async def test_handle_delivers_to_own_destinations(
    registry: ChannelRegistry, sms: FakeChannel
) -> None:
    results = await RecipientContext("emma", registry).handle(_event("emma"))

    assert [r.ok for r in results] == [True]
    assert sms.sent == [("emma", "Reminder: Emma and Noah: swim at 4")]


async def test_handle_drops_other_recipients(
    registry: ChannelRegistry, sms: FakeChannel, caplog
) -> None:
    with caplog.at_level(logging.ERROR):
        results = await RecipientContext("emma", registry).handle(_event("noah"))

    assert results == []
    assert sms.sent == []
    assert "dropping" in caplog.text


async def test_content_filter_applies_to_recipient_messages(
    registry: ChannelRegistry, sms: FakeChannel
) -> None:
    ctx = RecipientContext("emma", registry, content_filter=lambda m: m.replace(" and Noah", ""))

    await ctx.handle(_event("emma"))

    assert sms.sent == [("emma", "Reminder: Emma: swim at 4")]


async def test_broadcast_skips_content_filter(
    registry: ChannelRegistry, sms: FakeChannel
) -> None:
    router = DispatchRouter(registry)
    RecipientContext("emma", registry, content_filter=lambda m: "filtered").start(router)

    await router.route(_event(None).reminder)

    assert sms.sent == [(None, "Reminder: Emma and Noah: swim at 4")]


async def test_no_destinations() -> None:
    ctx = RecipientContext("emma", ChannelRegistry())
    assert await ctx.handle(_event("emma")) == []
