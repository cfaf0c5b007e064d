# src/taskminder/notifiers/router.py

from __future__ import annotations

import logging
from collections.abc import Mapping

from ..core.ports import Notifier
from ..reminders.reminder_models import DeliveryResult, Reminder, RenderedMessage

logger = logging.getLogger(__name__)


class ChannelNotifier:
    """Picks the transport by reminder.channel. An unknown channel is a delivery failure."""

    def __init__(self, notifiers: Mapping[str, Notifier]) -> None:
        self._notifiers = dict(notifiers)

    @property
    def channels(self) -> list[str]:
        return sorted(self._notifiers)

    async def send(self, reminder: Reminder, contact: str, message: RenderedMessage) -> DeliveryResult:
        notifier = self._notifiers.get(reminder.channel)
        if notifier is None:
            return DeliveryResult.failure(f"no notifier for channel {reminder.channel!r}")
        return await notifier.send(reminder, contact, message)

    async def close(self) -> None:
        for channel, notifier in self._notifiers.items():
            try:
                await notifier.close()
            except Exception:
                logger.exception("Failed to close %s notifier", channel)
