"""DispatchRouter — publishes ready reminders to recipient-scoped subscribers."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from remindkit.notifications.channels import DeliveryResult, deliver
from remindkit.notifications.registry import ChannelRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import timedelta

    from remindkit.reminders.models import Reminder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderReady:
    """A reminder that is due, addressed to one recipient (or everyone).

    Attributes:
        reminder: The reminder being delivered.
        missed_by: How late delivery is, when it was missed during downtime.
    """

    reminder: Reminder
    missed_by: timedelta | None = None

    @property
    def recipient(self) -> str | None:
        return self.reminder.recipient

    @property
    def message(self) -> str:
        """Text sent to destinations."""
        r = self.reminder
        if self.missed_by is None:
            return f"Reminder: {r.text}"
        minutes = int(self.missed_by.total_seconds() // 60)
        return (
            f"Missed reminder: {r.text}\n"
            f"(was scheduled for {r.remind_time.strftime('%H:%M')}, {minutes} minutes ago)"
        )


if TYPE_CHECKING:
    ReminderHandler = Callable[[ReminderReady], Awaitable[list[DeliveryResult]]]


@dataclass
class DeliveryReport:
    """Per-destination results for one routed reminder."""

    reminder_id: int
    recipient: str | None
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """At least one targeted destination accepted the reminder."""
        return any(r.ok for r in self.results)

    @property
    def failures(self) -> list[DeliveryResult]:
        return [r for r in self.results if not r.ok]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by :meth:`DispatchRouter.subscribe`."""

    router: DispatchRouter
    recipient: str
    token: int

    @property
    def active(self) -> bool:
        """False once detached or released by :meth:`DispatchRouter.close`."""
        return self.router.is_subscribed(self)

    def detach(self) -> bool:
        """Remove the subscription. Safe to call more than once."""
        return self.router.unsubscribe(self)


class DispatchRouter:
    """Routes ready reminders to the right destinations.

    Recipient-scoped reminders are published only to handlers subscribed for
    that recipient. Reminders without a recipient are broadcast to every
    destination in the channel registry, which is the only broadcast path.

    Singleton accessed via ``DispatchRouter.get()``; pass an explicit
    *channels* registry for tests.
    """

    _instance: DispatchRouter | None = None

    def __init__(self, channels: ChannelRegistry | None = None) -> None:
        self._channels = channels or ChannelRegistry()
        self._subscribers: dict[str, dict[int, ReminderHandler]] = {}
        self._tokens = itertools.count(1)

    @classmethod
    def get(cls) -> DispatchRouter:
        """Return the singleton instance, creating it if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton — for tests only."""
        cls._instance = None

    @property
    def channels(self) -> ChannelRegistry:
        return self._channels

    # -- Subscriptions ---------------------------------------------------------

    def subscribe(
        self,
        recipient: str,
        handler: ReminderHandler,
    ) -> Subscription:
        """Attach *handler* to reminders addressed to *recipient*."""
        if not recipient:
            msg = "recipient must not be empty"
            raise ValueError(msg)
        token = next(self._tokens)
        self._subscribers.setdefault(recipient, {})[token] = handler
        logger.info("Subscribed handler %d for recipient %s", token, recipient)
        return Subscription(router=self, recipient=recipient, token=token)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Detach a subscription. Returns False if it was not attached."""
        handlers = self._subscribers.get(subscription.recipient)
        if not handlers or subscription.token not in handlers:
            return False
        del handlers[subscription.token]
        if not handlers:
            del self._subscribers[subscription.recipient]
        logger.info(
            "Unsubscribed handler %d for recipient %s", subscription.token, subscription.recipient
        )
        return True

    def is_subscribed(self, subscription: Subscription) -> bool:
        return subscription.token in self._subscribers.get(subscription.recipient, {})

    def subscriber_count(self, recipient: str) -> int:
        return len(self._subscribers.get(recipient, {}))

    def close(self) -> None:
        """Detach every subscription."""
        count = sum(len(h) for h in self._subscribers.values())
        self._subscribers.clear()
        if count:
            logger.info("Released %d subscription(s)", count)

    # -- Routing ---------------------------------------------------------------

    async def route(self, reminder: Reminder, *, missed_by: timedelta | None = None) -> bool:
        """Deliver *reminder*. True if at least one targeted destination succeeded."""
        report = await self.route_report(reminder, missed_by=missed_by)
        return report.delivered

    async def route_report(
        self, reminder: Reminder, *, missed_by: timedelta | None = None
    ) -> DeliveryReport:
        """Deliver *reminder* and return every per-destination result."""
        event = ReminderReady(reminder=reminder, missed_by=missed_by)
        if reminder.is_broadcast:
            results = await self._broadcast(event)
        else:
            results = await self._publish(event)

        report = DeliveryReport(
            reminder_id=reminder.id, recipient=reminder.recipient, results=results
        )
        for failure in report.failures:
            logger.warning(
                "Reminder %d: destination %s failed (%s)",
                reminder.id,
                failure.destination,
                failure.error,
            )
        if not results:
            logger.warning(
                "Reminder %d has no destinations for recipient %s",
                reminder.id,
                reminder.recipient or "<broadcast>",
            )
        return report

    async def _publish(self, event: ReminderReady) -> list[DeliveryResult]:
        handlers = list(self._subscribers.get(event.recipient or "", {}).items())
        if not handlers:
            return []
        batches = await asyncio.gather(
            *(self._invoke(token, handler, event) for token, handler in handlers)
        )
        return [result for batch in batches for result in batch]

    async def _invoke(
        self,
        token: int,
        handler: ReminderHandler,
        event: ReminderReady,
    ) -> list[DeliveryResult]:
        """Run one subscriber, turning an exception into a failed result."""
        try:
            return list(await handler(event))
        except Exception as exc:
            logger.exception(
                "Subscriber %d for %s failed on reminder %d",
                token,
                event.recipient,
                event.reminder.id,
            )
            return [DeliveryResult(f"subscriber-{token}", ok=False, error=exc)]

    async def _broadcast(self, event: ReminderReady) -> list[DeliveryResult]:
        # Broadcasts skip per-recipient content filters; they address no one in particular.
        destinations = self._channels.all_channels()
        if not destinations:
            return []
        return list(
            await asyncio.gather(*(deliver(ch, None, event.message) for ch in destinations))
        )
