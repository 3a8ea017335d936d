"""Reminder fan-out — destinations, recipient subscriptions, and routing."""

from remindkit.notifications.channels import (
    DeliveryResult,
    LogChannel,
    NotificationChannel,
    deliver,
)
from remindkit.notifications.context import RecipientContext
from remindkit.notifications.registry import ChannelRegistry
from remindkit.notifications.router import (
    DeliveryReport,
    DispatchRouter,
    ReminderReady,
    Subscription,
)

__all__ = [
    "ChannelRegistry",
    "DeliveryReport",
    "DeliveryResult",
    "DispatchRouter",
    "LogChannel",
    "NotificationChannel",
    "RecipientContext",
    "ReminderReady",
    "Subscription",
    "deliver",
]
