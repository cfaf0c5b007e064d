# tests/test_scan_cycle.py

from __future__ import annotations

import pytest

from taskminder.reminders.dispatcher import BatchDispatcher
from taskminder.reminders.reminder_models import ReminderStatus, StoreUnavailable
from taskminder.reminders.scan_cycle import ScanCycle

from .fakes import FakeClock, FakeDirectory, FakeNotifier, InMemoryReminderRepo


def _cycle(repo, directory, notifier, clock, batch_size: int = 50) -> ScanCycle:
    dispatcher = BatchDispatcher(repo, directory, notifier, batch_size=batch_size, clock=clock)
    return ScanCycle(repo, dispatcher, clock=clock)


@pytest.mark.asyncio
async def test_empty_store_gives_zero_summary(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    summary = await _cycle(repo, directory, notifier, clock).run()

    assert (summary.total, summary.processed, summary.failed, summary.chunks) == (0, 0, 0, 0)
    assert notifier.sent == []
    assert repo.fetch_calls == 1


@pytest.mark.asyncio
async def test_each_due_reminder_attempted_once_and_never_resent(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    due = [repo.add(scheduled_at=clock() - i) for i in range(1, 6)]
    cycle = _cycle(repo, directory, notifier, clock, batch_size=2)

    first = await cycle.run()
    second = await cycle.run()

    assert (first.total, first.processed, first.chunks) == (5, 5, 3)
    assert second.total == 0
    assert sorted(notifier.sent_ids) == sorted(r.id for r in due)


@pytest.mark.asyncio
async def test_processed_at_not_before_cycle_time(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    r = repo.add(scheduled_at=clock() - 3600)
    cycle_time = clock()

    await _cycle(repo, directory, notifier, clock).run()

    sent = repo.reminders[r.id]
    assert sent.status == ReminderStatus.SENT
    assert sent.processed_at is not None
    assert sent.processed_at >= cycle_time


@pytest.mark.asyncio
async def test_future_reminder_waits_for_its_time(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    r = repo.add(scheduled_at=clock() + 300)
    cycle = _cycle(repo, directory, notifier, clock)

    assert (await cycle.run()).total == 0
    assert repo.reminders[r.id].status == ReminderStatus.SCHEDULED

    clock.advance(300)
    summary = await cycle.run()
    assert summary.processed == 1
    assert notifier.sent_ids == [r.id]


@pytest.mark.asyncio
async def test_failed_reminder_is_retried_next_cycle(
    repo: InMemoryReminderRepo, directory: FakeDirectory, clock: FakeClock
) -> None:
    r = repo.add(scheduled_at=clock() - 1)
    notifier = FakeNotifier(fail_ids={r.id})
    cycle = _cycle(repo, directory, notifier, clock)

    assert (await cycle.run()).failed == 1

    notifier.fail_ids.clear()
    assert (await cycle.run()).processed == 1
    assert repo.reminders[r.id].status == ReminderStatus.SENT


@pytest.mark.asyncio
async def test_cancelled_before_fetch_is_not_sent(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    r = repo.add(scheduled_at=clock() - 1)
    repo.mark_cancelled(r.id)

    summary = await _cycle(repo, directory, notifier, clock).run()

    assert summary.total == 0
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_store_unavailable_propagates(
    repo: InMemoryReminderRepo, directory: FakeDirectory, notifier: FakeNotifier, clock: FakeClock
) -> None:
    repo.fail_fetch = True

    with pytest.raises(StoreUnavailable):
        await _cycle(repo, directory, notifier, clock).run()
