# src/taskminder/reminders/scan_cycle.py

from __future__ import annotations

import asyncio
import logging
import time

from ..core.ports import Clock, ReminderRepo
from .dispatcher import BatchDispatcher
from .reminder_models import CycleSummary

logger = logging.getLogger(__name__)


class ScanCycle:
    """
    One full pass: capture now -> fetch due reminders -> dispatch -> summarize.

    Nothing is cached between runs; every call re-reads the store.
    StoreUnavailable from fetch_due propagates to the caller (the scheduler).
    Failed reminders are not retried within the same pass; they stay due.
    """

    def __init__(self, store: ReminderRepo, dispatcher: BatchDispatcher, *, clock: Clock = time.time) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock

    async def run(self) -> CycleSummary:
        now_ts = self._clock()
        due = await asyncio.to_thread(self._store.fetch_due, now_ts)
        if not due:
            logger.debug("Scan at %.3f: nothing due", now_ts)
            return CycleSummary()

        logger.info("Scan at %.3f: %d reminder(s) due", now_ts, len(due))
        return await self._dispatcher.dispatch(due)

    async def __call__(self) -> CycleSummary:
        return await self.run()
