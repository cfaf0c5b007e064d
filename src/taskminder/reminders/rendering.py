# src/taskminder/reminders/rendering.py

from __future__ import annotations

import logging
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .reminder_models import Recipient, Reminder, RenderedMessage, TaskInfo

logger = logging.getLogger(__name__)


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; rendering in UTC", name)
        return UTC


def format_local(ts: float, tz_name: str) -> str:
    """Render an epoch timestamp as e.g. 'Mar 5, 2026, 9:30 AM' in the given zone."""
    dt = datetime.fromtimestamp(ts, tz=UTC).astimezone(_zone(tz_name))
    hour = dt.hour % 12 or 12
    ampm = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%b} {dt.day}, {dt.year}, {hour}:{dt.minute:02d} {ampm}"


def render_reminder(reminder: Reminder, task: TaskInfo, recipient: Recipient) -> RenderedMessage:
    """
    Build the notification content.

    The reminder's timezone only affects how times are printed; due-time
    comparison never looks at it.
    """
    title = (task.title or "").strip() or "(untitled)"
    greeting = f"Hello {(recipient.display_name or '').strip()}".strip()

    lines = [
        greeting,
        "",
        f"This is a reminder for your task: {title}.",
    ]
    if task.description:
        lines.append(f"Description: {task.description}")
    if task.due_at is not None:
        lines.append(f"Due: {format_local(task.due_at, reminder.timezone)}")
    lines.append(f"Scheduled at: {format_local(reminder.scheduled_at, reminder.timezone)} ({reminder.timezone})")

    return RenderedMessage(subject=f"Task Reminder: {title}", body="\n".join(lines))
