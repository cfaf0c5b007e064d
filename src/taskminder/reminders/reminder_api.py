# src/taskminder/reminders/reminder_api.py

from __future__ import annotations

import logging

from .reminder_models import Reminder, ReminderChannel, TaskInfo
from .reminder_store import ReminderStore

logger = logging.getLogger(__name__)

DEFAULT_LEAD_MINUTES = 60


def reminder_time_for(due_at: float, *, lead_minutes: int = DEFAULT_LEAD_MINUTES) -> float:
    """A task's reminder becomes due `lead_minutes` before the task itself."""
    return float(due_at) - max(0, int(lead_minutes)) * 60


def schedule_task_reminder(
    store: ReminderStore,
    *,
    task_id: int,
    user_id: str,
    due_at: float,
    timezone: str,
    channel: str = ReminderChannel.EMAIL.value,
    lead_minutes: int = DEFAULT_LEAD_MINUTES,
) -> Reminder:
    """
    Convenience helper for the task collaborator: one reminder per task with a due date.
    """
    scheduled_at = reminder_time_for(due_at, lead_minutes=lead_minutes)
    reminder = store.schedule_reminder(
        task_id=task_id,
        user_id=user_id,
        scheduled_at=scheduled_at,
        timezone=timezone,
        channel=channel,
    )
    logger.info("Scheduled reminder id=%s for task_id=%s at=%.0f", reminder.id, task_id, scheduled_at)
    return reminder


def cancel_task_reminders(store: ReminderStore, task_id: int) -> int:
    """Cancel every still-scheduled reminder of a task (task edited or deleted). Returns the count."""
    cancelled = 0
    for reminder in store.list_for_task(task_id):
        if reminder.status.is_terminal:
            continue
        if store.mark_cancelled(reminder.id) is not None:
            cancelled += 1
    if cancelled:
        logger.info("Cancelled %d reminder(s) for task_id=%s", cancelled, task_id)
    return cancelled


def reschedule_task_reminder(
    store: ReminderStore,
    *,
    task_id: int,
    user_id: str,
    due_at: float | None,
    timezone: str | None,
    channel: str = ReminderChannel.EMAIL.value,
    lead_minutes: int = DEFAULT_LEAD_MINUTES,
) -> Reminder | None:
    """
    Task edited: cancel the pending reminder(s) and schedule a fresh one if the
    task still has a due date and a timezone.
    """
    cancel_task_reminders(store, task_id)
    if due_at is None or not timezone:
        return None
    return schedule_task_reminder(
        store,
        task_id=task_id,
        user_id=user_id,
        due_at=due_at,
        timezone=timezone,
        channel=channel,
        lead_minutes=lead_minutes,
    )


def purge_task_reminders(store: ReminderStore, task_id: int) -> int:
    """Task deleted: physically drop its reminders. Returns the number removed."""
    removed = store.delete_for_task(task_id)
    logger.debug("Removed %d reminder(s) for deleted task_id=%s", removed, task_id)
    return removed


def sync_task_reminder(
    store: ReminderStore,
    task: TaskInfo,
    *,
    user_id: str,
    timezone: str | None,
    channel: str = ReminderChannel.EMAIL.value,
    lead_minutes: int = DEFAULT_LEAD_MINUTES,
) -> Reminder | None:
    """
    Task created or edited: make its reminders match the task row.

    reminder_enabled with a due date -> exactly one fresh scheduled reminder;
    otherwise any pending reminder is cancelled and None is returned.
    """
    if not task.reminder_enabled or task.due_at is None:
        cancel_task_reminders(store, task.task_id)
        return None
    if not timezone or not timezone.strip():
        raise ValueError("timezone is required when reminder_enabled is set")
    return reschedule_task_reminder(
        store,
        task_id=task.task_id,
        user_id=user_id,
        due_at=task.due_at,
        timezone=timezone,
        channel=channel,
        lead_minutes=lead_minutes,
    )
