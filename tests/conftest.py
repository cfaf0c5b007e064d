# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskminder.reminders.directory_store import DirectoryStore
from taskminder.reminders.reminder_store import ReminderStore

from .fakes import FakeClock, FakeDirectory, FakeNotifier, InMemoryReminderRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    Not read from the environment, so unit tests stay deterministic.
    """
    return SimpleNamespace(
        app_name="taskminder-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "taskminder.sqlite3",
        scan_interval_seconds=60.0,
        batch_size=50,
        lead_minutes=60,
        max_consecutive_store_failures=0,
        default_channel="console",
        channels=["console"],
        smtp_host="",
        smtp_port=587,
        smtp_username="",
        smtp_password="",
        smtp_from="",
        smtp_starttls=True,
        smtp_timeout_seconds=5.0,
        matrix_homeserver="",
        matrix_user_id="",
        matrix_password="",
        matrix_store_path=tmp_path / "matrix_store",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def repo(clock: FakeClock) -> InMemoryReminderRepo:
    return InMemoryReminderRepo(clock)


@pytest.fixture()
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def reminder_store(tmp_path: Path, clock: FakeClock) -> ReminderStore:
    """Real SQLite store: its query/transition correctness is part of what we test."""
    return ReminderStore(tmp_path / "reminders.sqlite3", clock=clock)


@pytest.fixture()
def directory_store(tmp_path: Path) -> DirectoryStore:
    return DirectoryStore(tmp_path / "reminders.sqlite3")
