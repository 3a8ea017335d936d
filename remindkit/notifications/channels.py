"""NotificationChannel protocol and per-destination delivery results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from remindkit.errors import TransientDeliveryError

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol that all destinations must satisfy."""

    @property
    def name(self) -> str:
        """Unique destination identifier (e.g. 'telegram-emma', 'slack')."""
        ...

    async def send(self, recipient: str | None, message: str) -> bool:
        """Send a plain text message. Returns True on success.

        *recipient* is None for broadcasts; the destination then uses its own
        default target. Any network timeout is the destination's concern.
        """
        ...


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt to one destination."""

    destination: str
    ok: bool
    error: Exception | None = None


async def deliver(channel: NotificationChannel, recipient: str | None, message: str) -> DeliveryResult:
    """Send *message* through *channel*, never raising.

    A ``False`` return or an exception both become a failed result carrying a
    ``TransientDeliveryError``.
    """
    try:
        ok = await channel.send(recipient, message)
    except Exception as exc:
        logger.exception(
            "Delivery via %s failed for recipient=%s", channel.name, recipient or "<broadcast>"
        )
        error = TransientDeliveryError(channel.name, str(exc))
        error.__cause__ = exc
        return DeliveryResult(channel.name, ok=False, error=error)

    if not ok:
        logger.warning(
            "Delivery via %s rejected for recipient=%s", channel.name, recipient or "<broadcast>"
        )
        return DeliveryResult(channel.name, ok=False, error=TransientDeliveryError(channel.name))
    return DeliveryResult(channel.name, ok=True)


class LogChannel:
    """Destination that writes deliveries to the log.

    Used by the standalone service when no real destinations are wired in.
    """

    def __init__(self, channel_name: str = "log") -> None:
        self._name = channel_name

    @property
    def name(self) -> str:
        return self._name

    async def send(self, recipient: str | None, message: str) -> bool:
        logger.info("[%s] -> %s: %s", self._name, recipient or "everyone", message)
        return True
