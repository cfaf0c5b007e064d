# src/taskminder/reminders/dispatcher.py

from __future__ import annotations

"""
Batch dispatcher.

Given the ordered due set of one scan cycle:
- split it into fixed-size chunks,
- run the chunks one after another,
- inside a chunk, dispatch every reminder concurrently and wait for all of them,
- turn each reminder's fate into a DispatchOutcome value and aggregate them.

One reminder's failure never unwinds the chunk: every path returns an outcome.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from ..core.ports import Clock, Notifier, ReminderRepo, TaskDirectory
from .reminder_models import (
    CycleSummary,
    DispatchOutcome,
    FailureReason,
    Recipient,
    Reminder,
    RenderedMessage,
    StoreUnavailable,
    TaskInfo,
)
from .rendering import render_reminder

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50

T = TypeVar("T")

Renderer = Callable[[Reminder, TaskInfo, Recipient], RenderedMessage]


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive lists of at most `size`, preserving order."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchDispatcher:
    def __init__(
            self,
            store: ReminderRepo,
            directory: TaskDirectory,
            notifier: Notifier,
            *,
            batch_size: int = DEFAULT_BATCH_SIZE,
            clock: Clock = time.time,
            render: Renderer = render_reminder,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._store = store
        self._directory = directory
        self._notifier = notifier
        self._batch_size = int(batch_size)
        self._clock = clock
        self._render = render

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def dispatch(self, reminders: Sequence[Reminder]) -> CycleSummary:
        summary = CycleSummary()

        for index, group in enumerate(chunked(reminders, self._batch_size)):
            results = await asyncio.gather(
                *(self.dispatch_one(r) for r in group),
                return_exceptions=True,
            )
            summary.chunks += 1

            for reminder, res in zip(group, results):
                if isinstance(res, BaseException):
                    # dispatch_one already converts errors; this only catches escapes.
                    logger.error("Reminder %s dispatch escaped: %r", reminder.id, res)
                    res = DispatchOutcome(
                        reminder_id=reminder.id,
                        ok=False,
                        failure=FailureReason.INTERNAL_ERROR,
                        detail=repr(res),
                    )
                summary.add(res)

            logger.debug("Chunk %d done size=%d totals=%s", index, len(group), summary.as_dict())

        return summary

    async def dispatch_one(self, reminder: Reminder) -> DispatchOutcome:
        try:
            return await self._deliver(reminder)
        except Exception as e:
            logger.exception("Unexpected error dispatching reminder %s", reminder.id)
            return DispatchOutcome(
                reminder_id=reminder.id,
                ok=False,
                failure=FailureReason.INTERNAL_ERROR,
                detail=repr(e),
            )

    async def _deliver(self, reminder: Reminder) -> DispatchOutcome:
        rid = reminder.id

        try:
            task, recipient = await asyncio.gather(
                asyncio.to_thread(self._directory.get_task, reminder.task_id),
                asyncio.to_thread(self._directory.get_recipient, reminder.user_id),
            )
        except StoreUnavailable as e:
            logger.warning("Skipped reminder %s: directory unavailable: %s", rid, e)
            return self._failed(rid, FailureReason.RECIPIENT_UNRESOLVABLE, str(e))

        if task is None or recipient is None:
            logger.warning(
                "Skipped reminder %s: task or user missing task_id=%s user_id=%s",
                rid,
                reminder.task_id,
                reminder.user_id,
            )
            return self._failed(rid, FailureReason.RECIPIENT_UNRESOLVABLE, "task or user missing")

        contact = recipient.contact_for(reminder.channel)
        if contact is None:
            logger.warning(
                "Skipped reminder %s: user %s has no %s contact",
                rid,
                reminder.user_id,
                reminder.channel,
            )
            return self._failed(rid, FailureReason.RECIPIENT_UNRESOLVABLE, "no contact address")

        message = self._render(reminder, task, recipient)
        result = await self._notifier.send(reminder, contact, message)
        if not result.ok:
            logger.warning("Delivery failed reminder=%s channel=%s: %s", rid, reminder.channel, result.reason)
            return self._failed(rid, FailureReason.DELIVERY_FAILED, result.reason)

        processed_at = self._clock()
        try:
            updated = await asyncio.to_thread(self._store.mark_sent, rid, processed_at)
        except Exception as e:
            logger.exception(
                "DUPLICATE RISK: reminder %s delivered but mark_sent failed task_id=%s user_id=%s",
                rid,
                reminder.task_id,
                reminder.user_id,
            )
            return self._failed(rid, FailureReason.MARK_FAILED, repr(e))

        if updated is None:
            logger.error(
                "DUPLICATE RISK: reminder %s delivered but not found in scheduled state task_id=%s user_id=%s",
                rid,
                reminder.task_id,
                reminder.user_id,
            )
            return self._failed(rid, FailureReason.MARK_FAILED, "not found")

        logger.info("Reminder %s sent via %s", rid, reminder.channel)
        return DispatchOutcome(reminder_id=rid, ok=True)

    @staticmethod
    def _failed(reminder_id: int, reason: FailureReason, detail: str | None) -> DispatchOutcome:
        return DispatchOutcome(reminder_id=reminder_id, ok=False, failure=reason, detail=detail)
