"""ChannelRegistry — configured destinations and which recipients own them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remindkit.notifications.channels import NotificationChannel

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Holds every configured destination and each recipient's subset.

    A recipient only ever sees the destinations explicitly assigned to it;
    :meth:`all_channels` is reserved for broadcasts.
    """

    def __init__(self) -> None:
        self._channels: dict[str, NotificationChannel] = {}
        self._assignments: dict[str, list[str]] = {}

    def register_channel(self, channel: NotificationChannel) -> None:
        """Register a destination. Raises ValueError on duplicate name."""
        if channel.name in self._channels:
            msg = f"Channel '{channel.name}' is already registered"
            raise ValueError(msg)
        self._channels[channel.name] = channel

    def assign(self, recipient: str, *channel_names: str) -> None:
        """Scope destinations to *recipient*. Raises KeyError if one is not registered."""
        for name in channel_names:
            if name not in self._channels:
                msg = f"Channel '{name}' is not registered"
                raise KeyError(msg)
        assigned = self._assignments.setdefault(recipient, [])
        for name in channel_names:
            if name not in assigned:
                assigned.append(name)
        logger.debug("Recipient %s now has channels %s", recipient, assigned)

    def get_channel(self, name: str) -> NotificationChannel | None:
        """Look up a destination by name."""
        return self._channels.get(name)

    def list_channels(self) -> list[str]:
        """Return names of all registered destinations."""
        return list(self._channels.keys())

    def channels_for(self, recipient: str) -> list[NotificationChannel]:
        """Destinations assigned to *recipient* (empty if none)."""
        return [self._channels[name] for name in self._assignments.get(recipient, [])]

    def all_channels(self) -> list[NotificationChannel]:
        """Every configured destination, for broadcast delivery."""
        return list(self._channels.values())
