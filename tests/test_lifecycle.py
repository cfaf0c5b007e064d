# tests/test_lifecycle.py

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
from datetime import UTC, datetime

import pytest

from taskminder.cli import main as cli_main
from taskminder.cli.bootstrap import create_service, start_reminder_service
from taskminder.reminders.reminder_models import ReminderStatus, StoreUnavailable
from taskminder.reminders.reminder_store import ReminderStore
from taskminder.reminders.scheduler import SchedulerState

from .fakes import FakeClock, FakeNotifier


def _seed(service, clock: FakeClock, *, channel: str = "email") -> int:
    service.directory.add_user(name="Ada", email="ada@example.com", user_id="u1")
    task_id = service.directory.add_task(user_id="u1", title="Pay rent", due_at=clock() + 3600)
    reminder = service.store.schedule_reminder(
        task_id=task_id, user_id="u1", scheduled_at=clock() - 10, timezone="UTC", channel=channel
    )
    return reminder.id


def _fail_fetch(self, now_ts: float):
    raise StoreUnavailable("database is locked")


@pytest.mark.asyncio
async def test_scan_over_sqlite_delivers_and_marks_sent(settings, clock: FakeClock) -> None:
    notifier = FakeNotifier()
    service = create_service(settings=settings, notifier=notifier, clock=clock)
    reminder_id = _seed(service, clock)

    try:
        first = await service.scan.run()
        second = await service.scan.run()
    finally:
        await service.aclose()

    assert (first.total, first.processed, first.failed) == (1, 1, 0)
    assert second.total == 0
    assert notifier.sent_ids == [reminder_id]
    assert notifier.sent[0].contact == "ada@example.com"
    assert notifier.sent[0].message.subject == "Task Reminder: Pay rent"
    assert notifier.closed

    stored = service.store.get_reminder(reminder_id)
    assert stored is not None
    assert stored.status == ReminderStatus.SENT
    assert stored.processed_at == clock()


@pytest.mark.asyncio
async def test_started_service_runs_first_cycle_and_shuts_down(settings, clock: FakeClock) -> None:
    notifier = FakeNotifier()
    service = start_reminder_service(settings=settings, notifier=notifier, clock=clock)
    _seed(service, clock)

    # The first cycle may have run before seeding; a manual trigger covers both orders.
    async def _poll() -> None:
        while not notifier.sent:
            await service.scheduler.trigger()
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=2.0)
    await service.aclose()

    assert service.scheduler.cycles_run >= 1
    assert service.scheduler.fire() is None
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_run_service_exits_1_on_fatal_store_failure(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    settings.scan_interval_seconds = 0.01
    settings.max_consecutive_store_failures = 1
    monkeypatch.setattr(ReminderStore, "fetch_due", _fail_fetch)

    code = await asyncio.wait_for(cli_main.run_service(settings), timeout=2.0)

    assert code == cli_main.EXIT_FAULT


def _capture_service(monkeypatch: pytest.MonkeyPatch) -> dict:
    captured: dict = {}
    real_start = cli_main.start_reminder_service

    def start(**kwargs):
        service = real_start(**kwargs)
        captured["service"] = service
        return service

    monkeypatch.setattr(cli_main, "start_reminder_service", start)
    return captured


@pytest.mark.asyncio
async def test_run_service_sigterm_stops_gracefully(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_service(monkeypatch)
    loop = asyncio.get_running_loop()
    loop.call_later(0.1, os.kill, os.getpid(), signal.SIGTERM)

    code = await asyncio.wait_for(cli_main.run_service(settings), timeout=2.0)

    assert code == cli_main.EXIT_OK
    scheduler = captured["service"].scheduler
    assert scheduler.state == SchedulerState.STOPPED
    assert scheduler.cycles_run >= 1
    assert scheduler.fatal_error is None


@pytest.mark.asyncio
async def test_unretrieved_task_error_is_logged_and_service_keeps_running(
    settings, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    settings.scan_interval_seconds = 0.01
    captured = _capture_service(monkeypatch)
    loop = asyncio.get_running_loop()
    seen: dict = {}

    def report_orphan_error() -> None:
        loop.call_exception_handler(
            {"message": "Task exception was never retrieved", "exception": RuntimeError("orphan boom")}
        )
        seen["cycles_at_error"] = captured["service"].scheduler.cycles_run

    def check_then_stop() -> None:
        scheduler = captured["service"].scheduler
        seen["state"] = scheduler.state
        seen["cycles_later"] = scheduler.cycles_run
        os.kill(os.getpid(), signal.SIGTERM)

    loop.call_later(0.05, report_orphan_error)
    loop.call_later(0.2, check_then_stop)

    with caplog.at_level(logging.ERROR, logger="taskminder.cli.main"):
        code = await asyncio.wait_for(cli_main.run_service(settings), timeout=2.0)

    assert code == cli_main.EXIT_OK
    assert seen["state"] != SchedulerState.STOPPED
    assert seen["cycles_later"] > seen["cycles_at_error"]
    records = [r for r in caplog.records if "Unhandled error in event loop" in r.getMessage()]
    assert records
    assert records[0].exc_info is not None
    assert isinstance(records[0].exc_info[1], RuntimeError)


@pytest.fixture()
def cli(settings, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)
    return cli_main.main


def _last_json(capsys: pytest.CaptureFixture[str]) -> dict:
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_cli_schedule_then_cancel(cli, capsys: pytest.CaptureFixture[str], settings) -> None:
    due = datetime(2026, 3, 5, 15, 30, tzinfo=UTC).timestamp()

    code = cli(["schedule", "--task-id", "7", "--user-id", "u1", "--due", "2026-03-05T15:30:00", "--timezone", "UTC"])
    assert code == cli_main.EXIT_OK
    out = _last_json(capsys)
    assert out["scheduled_at"] == due - 3600

    reminder = ReminderStore(settings.db_path).get_reminder(out["id"])
    assert reminder is not None
    assert reminder.channel == "console"
    assert reminder.timezone == "UTC"

    assert cli(["cancel", "--task-id", "7"]) == cli_main.EXIT_OK
    assert _last_json(capsys) == {"cancelled": 1}
    assert ReminderStore(settings.db_path).get_reminder(out["id"]).status == ReminderStatus.CANCELLED


def test_cli_scan_prints_summary(cli, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli(["scan"]) == cli_main.EXIT_OK

    out = _last_json(capsys)
    assert out["total"] == 0
    assert out["processed"] == 0


def test_cli_scan_store_unavailable_exits_2(cli, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ReminderStore, "fetch_due", _fail_fetch)

    assert cli(["scan"]) == cli_main.EXIT_STORE_UNAVAILABLE


def test_cli_schedule_rejects_blank_timezone(cli) -> None:
    code = cli(["schedule", "--task-id", "7", "--user-id", "u1", "--due", "2026-03-05T15:30:00+00:00", "--timezone", " "])
    assert code == cli_main.EXIT_FAULT
