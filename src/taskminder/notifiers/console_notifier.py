# src/taskminder/notifiers/console_notifier.py

from __future__ import annotations

import logging

from ..reminders.reminder_models import DeliveryResult, Reminder, RenderedMessage

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """Log-only transport for local runs. Always succeeds."""

    async def send(self, reminder: Reminder, contact: str, message: RenderedMessage) -> DeliveryResult:
        logger.info(
            "[reminder %s -> %s] %s\n%s",
            reminder.id,
            contact,
            message.subject,
            message.body,
        )
        return DeliveryResult.success()

    async def close(self) -> None:
        return None
