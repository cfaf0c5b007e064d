# src/taskminder/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the reminder engine.

The engine depends on Protocols instead of concrete implementations.
This keeps storage/transports swappable and makes testing easier.
"""

from typing import Awaitable, Callable, Protocol

from ..reminders.reminder_models import (
    DeliveryResult,
    Recipient,
    Reminder,
    RenderedMessage,
    TaskInfo,
)

Clock = Callable[[], float]
# Returns the current time as UTC epoch seconds (time.time-compatible).


class ReminderRepo(Protocol):
    """
    Reminder store contract.

    Every method may raise StoreUnavailable. Each mark_* call is independently
    atomic; there is no cross-reminder transaction.
    """

    def fetch_due(self, now_ts: float) -> list[Reminder]: ...
    def mark_sent(self, reminder_id: int, processed_at: float) -> Reminder | None: ...
    def mark_cancelled(self, reminder_id: int) -> Reminder | None: ...


class TaskDirectory(Protocol):
    """Lookup of the task and recipient a reminder points at."""

    def get_task(self, task_id: int) -> TaskInfo | None: ...
    def get_recipient(self, user_id: str) -> Recipient | None: ...


class Notifier(Protocol):
    """
    Transport port: deliver one rendered reminder to one contact.

    Expected failures (bad address, transport error) are returned as
    DeliveryResult.failure(...), never raised.
    """

    def send(
            self,
            reminder: Reminder,
            contact: str,
            message: RenderedMessage,
    ) -> Awaitable[DeliveryResult]: ...

    def close(self) -> Awaitable[None]: ...
