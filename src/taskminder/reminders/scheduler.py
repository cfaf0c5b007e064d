# src/taskminder/reminders/scheduler.py

from __future__ import annotations

"""
Recurring scheduler.

A small ticker that:
- fires a scan cycle immediately on start, then every interval_seconds,
- keeps at most one cycle in flight (a tick that lands while a cycle is
  running is skipped, not queued),
- contains cycle errors so the next tick still fires,
- stops gracefully: no new ticks, the in-flight cycle runs to completion.

The cycle itself is injected as an async callable (usually a ScanCycle).
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum

from .reminder_models import CycleSummary, StoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 120.0


class SchedulerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class ReminderScheduler:
    def __init__(
            self,
            run_cycle: Callable[[], Awaitable[CycleSummary]],
            *,
            interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
            max_consecutive_store_failures: int = 0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._run_cycle = run_cycle
        self._interval = float(interval_seconds)
        self._max_store_failures = max(0, int(max_consecutive_store_failures))

        self._ticker: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[CycleSummary | None] | None = None
        self._stop_event = asyncio.Event()
        self._stopping = False
        self._fatal: BaseException | None = None
        self._consecutive_store_failures = 0

        self.cycles_run = 0
        self.cycles_failed = 0
        self.triggers_skipped = 0
        self.last_summary: CycleSummary | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def state(self) -> SchedulerState:
        if self._cycle_task is not None and not self._cycle_task.done():
            return SchedulerState.RUNNING
        if self._stopping or self._fatal is not None:
            return SchedulerState.STOPPED
        return SchedulerState.IDLE

    @property
    def fatal_error(self) -> BaseException | None:
        return self._fatal

    def start(self) -> None:
        """Start ticking. Must be called from inside a running event loop."""
        if self._ticker is not None:
            raise RuntimeError("scheduler already started")
        if self._stopping:
            raise RuntimeError("scheduler was stopped")
        self._ticker = asyncio.create_task(self._tick_loop(), name="reminder-scheduler")
        logger.info("Reminder scheduler started interval=%.1fs", self._interval)

    async def stop(self) -> None:
        """Stop scheduling new cycles and wait for the in-flight one (never cancels it)."""
        self._stopping = True
        self._stop_event.set()

        if self._ticker is not None:
            await self._ticker

        cycle = self._cycle_task
        if cycle is not None and not cycle.done():
            logger.info("Waiting for in-flight reminder scan to finish...")
            await cycle
        logger.info("Reminder scheduler stopped")

    async def wait(self) -> None:
        """Block until the scheduler stops; re-raise the fatal error that stopped it, if any."""
        await self._stop_event.wait()
        if self._fatal is not None:
            raise self._fatal

    def fire(self) -> asyncio.Task[CycleSummary | None] | None:
        """
        Launch a cycle unless one is already running.

        Returns the cycle task, or None when the trigger was coalesced or the
        scheduler is stopping.
        """
        if self._stopping or self._fatal is not None:
            return None
        if self._cycle_task is not None and not self._cycle_task.done():
            self.triggers_skipped += 1
            logger.warning("Previous reminder scan still running; skipping this trigger")
            return None
        self._cycle_task = asyncio.create_task(self._run_guarded(), name="reminder-scan")
        return self._cycle_task

    async def trigger(self) -> CycleSummary | None:
        """Manually run one cycle (subject to the one-in-flight rule) and wait for it."""
        task = self.fire()
        if task is None:
            return None
        return await task

    async def _tick_loop(self) -> None:
        while not self._stop_event.is_set():
            self.fire()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    async def _run_guarded(self) -> CycleSummary | None:
        started = time.monotonic()
        try:
            summary = await self._run_cycle()
        except StoreUnavailable as e:
            self.cycles_failed += 1
            self._consecutive_store_failures += 1
            logger.error(
                "Reminder scan failed: store unavailable (%d in a row): %s",
                self._consecutive_store_failures,
                e,
            )
            if self._max_store_failures and self._consecutive_store_failures >= self._max_store_failures:
                logger.critical(
                    "Store unavailable for %d consecutive scans; stopping scheduler",
                    self._consecutive_store_failures,
                )
                self._fatal = e
                self._stop_event.set()
            return None
        except Exception:
            self.cycles_failed += 1
            logger.exception("Reminder scan failed")
            return None

        self._consecutive_store_failures = 0
        self.cycles_run += 1
        self.last_summary = summary
        logger.info(
            "Reminder scan completed total=%d processed=%d failed=%d chunks=%d in %.2fs",
            summary.total,
            summary.processed,
            summary.failed,
            summary.chunks,
            time.monotonic() - started,
        )
        return summary
