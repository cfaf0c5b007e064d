# src/taskminder/cli/bootstrap.py

"""
Composition root.

- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite stores, notifiers, dispatcher, scan cycle and scheduler,
- returns a ReminderService holding every handle needed for shutdown.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..core.ports import Clock, Notifier
from ..notifiers.console_notifier import ConsoleNotifier
from ..notifiers.matrix_notifier import MatrixNotifier
from ..notifiers.router import ChannelNotifier
from ..notifiers.smtp_notifier import SmtpConfig, SmtpNotifier
from ..reminders.directory_store import DirectoryStore
from ..reminders.dispatcher import BatchDispatcher
from ..reminders.reminder_models import ReminderChannel
from ..reminders.reminder_store import ReminderStore
from ..reminders.scan_cycle import ScanCycle
from ..reminders.scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def build_notifier(settings) -> ChannelNotifier:
    """One transport per enabled channel; misconfigured channels are left out (and logged)."""
    notifiers: dict[str, Notifier] = {}
    for channel in settings.channels:
        if channel == ReminderChannel.EMAIL:
            if not settings.smtp_host:
                logger.warning("Email channel enabled but TASKMINDER_SMTP_HOST is not set; skipping")
                continue
            notifiers[channel] = SmtpNotifier(SmtpConfig.from_settings(settings))
        elif channel == ReminderChannel.MATRIX:
            notifiers[channel] = MatrixNotifier(settings)
        elif channel == ReminderChannel.CONSOLE:
            notifiers[channel] = ConsoleNotifier()
        else:
            logger.warning("Unknown channel %r in TASKMINDER_CHANNELS; skipping", channel)

    router = ChannelNotifier(notifiers)
    logger.info("Notifier channels: %s", ", ".join(router.channels) or "(none)")
    return router


@dataclass(slots=True)
class ReminderService:
    settings: Settings
    store: ReminderStore
    directory: DirectoryStore
    notifier: Notifier
    dispatcher: BatchDispatcher
    scan: ScanCycle
    scheduler: ReminderScheduler

    async def aclose(self) -> None:
        """Best-effort coordinated shutdown: scheduler first, then transports, then stores."""
        try:
            await self.scheduler.stop()
        except Exception:
            logger.exception("Scheduler stop failed.")

        try:
            await self.notifier.close()
        except Exception:
            logger.exception("Notifier close failed.")

        for store in (self.store, self.directory):
            try:
                store.close()
            except Exception:
                logger.debug("Store close failed.", exc_info=True)


def create_service(
    *,
    settings=None,
    notifier: Notifier | None = None,
    clock: Clock = time.time,
) -> ReminderService:
    """
    Build a ReminderService without starting it.

    Settings and the notifier are injectable. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = ReminderStore(settings.db_path, clock=clock)
    directory = DirectoryStore(settings.db_path)
    if notifier is None:
        notifier = build_notifier(settings)

    dispatcher = BatchDispatcher(
        store,
        directory,
        notifier,
        batch_size=settings.batch_size,
        clock=clock,
    )
    scan = ScanCycle(store, dispatcher, clock=clock)
    scheduler = ReminderScheduler(
        scan,
        interval_seconds=settings.scan_interval_seconds,
        max_consecutive_store_failures=settings.max_consecutive_store_failures,
    )
    return ReminderService(
        settings=settings,
        store=store,
        directory=directory,
        notifier=notifier,
        dispatcher=dispatcher,
        scan=scan,
        scheduler=scheduler,
    )


def start_reminder_service(
    *,
    settings=None,
    notifier: Notifier | None = None,
    clock: Clock = time.time,
) -> ReminderService:
    """Create the service and start its scheduler. Call from inside a running event loop."""
    service = create_service(settings=settings, notifier=notifier, clock=clock)
    service.scheduler.start()
    logger.info(
        "Reminder service started interval=%.0fs batch_size=%d db=%s",
        service.settings.scan_interval_seconds,
        service.settings.batch_size,
        service.settings.db_path,
    )
    return service
