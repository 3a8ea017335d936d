"""Tests for NotificationChannel delivery and LogChannel."""

import logging

from remindkit.errors import TransientDeliveryError
from remindkit.notifications.channels import LogChannel, NotificationChannel, deliver


class FakeChannel:
    def __init__(self, channel_name: str = "fake", ok: bool = True) -> None:
        self._name = channel_name
        self._ok = ok
        self.sent: list[tuple[str | None, str]] = []

    @property
    def name(self) -> str:
        return self._name

    async def send(self, recipient: str | None, message: str) -> bool:
        self.sent.append((recipient, message))
        return self._ok


class BrokenChannel(FakeChannel):
    async def send(self, recipient: str | None, message: str) -> bool:
        raise ConnectionError("network down")


def test_protocol_conformance() -> None:
    assert isinstance(FakeChannel(), NotificationChannel)
    assert isinstance(LogChannel(), NotificationChannel)


async def test_deliver_success() -> None:
    channel = FakeChannel()
    result = await deliver(channel, "emma", "hi")

    assert result.ok is True
    assert result.destination == "fake"
    assert result.error is None
    assert channel.sent == [("emma", "hi")]


async def test_deliver_rejected() -> None:
    result = await deliver(FakeChannel(ok=False), "emma", "hi")

    assert result.ok is False
    assert isinstance(result.error, TransientDeliveryError)
    assert result.error.destination == "fake"


async def test_deliver_exception_is_contained() -> None:
    result = await deliver(BrokenChannel("sms"), None, "hi")

    assert result.ok is False
    assert isinstance(result.error, TransientDeliveryError)
    assert isinstance(result.error.__cause__, ConnectionError)


async def test_log_channel_logs(caplog) -> None:
    channel = LogChannel("console")
    with caplog.at_level(logging.INFO):
        assert await channel.send(None, "Reminder: swim") is True

    assert channel.name == "console"
    assert "Reminder: swim" in caplog.text
    assert "everyone" in caplog.text
