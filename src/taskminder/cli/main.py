# src/taskminder/cli/main.py

"""
CLI entrypoint.

Subcommands:
- run       (default) long-running reminder service; SIGINT/SIGTERM stop it gracefully
- scan      run exactly one scan cycle and print its summary
- schedule  create a reminder for a task due time (due - lead interval)
- cancel    cancel every still-scheduled reminder of a task

Exit codes: 0 on normal/graceful exit, 1 on an unrecoverable fault,
2 when a one-shot command cannot reach the store.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from ..cli.bootstrap import create_service, start_reminder_service
from ..config import get_settings
from ..logging_setup import setup_logging
from ..reminders.reminder_api import cancel_task_reminders, schedule_task_reminder
from ..reminders.reminder_models import StoreUnavailable
from ..reminders.reminder_store import ReminderStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_STORE_UNAVAILABLE = 2


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Futures that failed with nobody awaiting them: log, keep running."""
    exc = context.get("exception")
    logger.error(
        "Unhandled error in event loop: %s",
        context.get("message", "unknown"),
        exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
    )


async def run_service(settings) -> int:
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_loop_exception_handler)

    service = start_reminder_service(settings=settings)
    stop_requested = asyncio.Event()

    def _handle_signal(signame: str) -> None:
        logger.info("Signal %s received, shutting down...", signame)
        stop_requested.set()

    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig.name)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) do not support loop signal handlers.
            pass

    stop_wait = asyncio.create_task(stop_requested.wait())
    scheduler_wait = asyncio.create_task(service.scheduler.wait())
    exit_code = EXIT_OK
    try:
        done, _ = await asyncio.wait({stop_wait, scheduler_wait}, return_when=asyncio.FIRST_COMPLETED)
        if scheduler_wait in done and scheduler_wait.exception() is not None:
            logger.critical("Reminder scheduler stopped on fatal error: %r", scheduler_wait.exception())
            exit_code = EXIT_FAULT
    finally:
        for t in (stop_wait, scheduler_wait):
            if not t.done():
                t.cancel()
        await service.aclose()
        for sig in installed:
            loop.remove_signal_handler(sig)

    return exit_code


async def scan_once(settings) -> dict[str, object]:
    service = create_service(settings=settings)
    try:
        summary = await service.scan.run()
    finally:
        await service.aclose()
    return summary.as_dict()


def _parse_due(raw: str, tz_name: str) -> float:
    """ISO-8601 timestamp; a naive value is read in the reminder's timezone."""
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.timestamp()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskminder", description="Task reminder dispatch service")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="run the reminder service (default)")
    sub.add_parser("scan", help="run one scan cycle and print the summary")

    p_schedule = sub.add_parser("schedule", help="schedule a reminder for a task")
    p_schedule.add_argument("--task-id", type=int, required=True)
    p_schedule.add_argument("--user-id", required=True)
    p_schedule.add_argument("--due", required=True, help="task due time, ISO-8601")
    p_schedule.add_argument("--timezone", required=True, help="IANA zone, e.g. Europe/Berlin")
    p_schedule.add_argument("--channel", default=None)

    p_cancel = sub.add_parser("cancel", help="cancel scheduled reminders of a task")
    p_cancel.add_argument("--task-id", type=int, required=True)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    settings = get_settings()
    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    try:
        if command == "run":
            logger.info("Starting %s...", settings.app_name)
            return asyncio.run(run_service(settings))

        if command == "scan":
            print(json.dumps(asyncio.run(scan_once(settings))))
            return EXIT_OK

        store = ReminderStore(settings.db_path)
        if command == "schedule":
            reminder = schedule_task_reminder(
                store,
                task_id=args.task_id,
                user_id=args.user_id,
                due_at=_parse_due(args.due, args.timezone),
                timezone=args.timezone,
                channel=args.channel or settings.default_channel,
                lead_minutes=settings.lead_minutes,
            )
            print(json.dumps({"id": reminder.id, "scheduled_at": reminder.scheduled_at}))
            return EXIT_OK

        if command == "cancel":
            print(json.dumps({"cancelled": cancel_task_reminders(store, args.task_id)}))
            return EXIT_OK

        raise ValueError(f"unknown command {command!r}")

    except StoreUnavailable as e:
        logger.error("Store unavailable: %s", e)
        return EXIT_STORE_UNAVAILABLE
    except Exception:
        logger.exception("Unrecoverable error in reminder service")
        return EXIT_FAULT
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    sys.exit(main())
