"""RecipientContext — a recipient's subscription to ready reminders."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from remindkit.notifications.channels import deliver

if TYPE_CHECKING:
    from collections.abc import Callable

    from remindkit.notifications.channels import DeliveryResult
    from remindkit.notifications.registry import ChannelRegistry
    from remindkit.notifications.router import DispatchRouter, ReminderReady, Subscription

logger = logging.getLogger(__name__)


class RecipientContext:
    """Owns one recipient's subscription and delivers to its destinations.

    Args:
        recipient: Recipient ID this context serves.
        channels: Registry used to resolve the recipient's destinations.
        content_filter: Optional rewrite applied to every outgoing message
            (e.g. to strip other recipients' names).
    """

    def __init__(
        self,
        recipient: str,
        channels: ChannelRegistry,
        *,
        content_filter: Callable[[str], str] | None = None,
    ) -> None:
        self.recipient = recipient
        self._channels = channels
        self._content_filter = content_filter
        self._subscription: Subscription | None = None

    @property
    def running(self) -> bool:
        """True while the subscription is attached to its router."""
        return self._subscription is not None and self._subscription.active

    def start(self, router: DispatchRouter) -> None:
        """Attach to *router*. A second call while attached is a no-op.

        A subscription released by ``router.close()`` is replaced, so a
        context can be started again after the scheduler restarts.
        """
        if self.running:
            return
        self._subscription = router.subscribe(self.recipient, self.handle)

    def stop(self) -> None:
        """Detach from the router. Safe even if never started."""
        if self._subscription is None:
            return
        self._subscription.detach()
        self._subscription = None

    async def handle(self, event: ReminderReady) -> list[DeliveryResult]:
        """Deliver *event* to this recipient's destinations concurrently."""
        if event.recipient != self.recipient:
            logger.error(
                "Recipient %s received reminder %d addressed to %s; dropping",
                self.recipient,
                event.reminder.id,
                event.recipient,
            )
            return []

        message = event.message
        if self._content_filter is not None:
            message = self._content_filter(message)

        destinations = self._channels.channels_for(self.recipient)
        if not destinations:
            logger.warning("Recipient %s has no destinations configured", self.recipient)
            return []
        results = await asyncio.gather(
            *(deliver(ch, self.recipient, message) for ch in destinations)
        )
        return list(results)
