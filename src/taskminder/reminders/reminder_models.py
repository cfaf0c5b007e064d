# src/taskminder/reminders/reminder_models.py

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum


class StoreUnavailable(Exception):
    """The backing store could not be reached (connection, lock, I/O errors)."""


class ReminderStatus(StrEnum):
    """
    Reminder lifecycle status.

    scheduled -> sent       (scan cycle, after a successful delivery)
    scheduled -> cancelled  (owning task deleted or edited)

    sent and cancelled are terminal.
    """

    SCHEDULED = "scheduled"
    SENT = "sent"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ReminderStatus.SCHEDULED

    @classmethod
    def from_db(cls, raw: str | None) -> ReminderStatus:
        """Strict: a corrupt status must not read back as a pending reminder."""
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"unknown reminder status {raw!r}") from None


class ReminderChannel(StrEnum):
    EMAIL = "email"
    MATRIX = "matrix"
    CONSOLE = "console"


@dataclass(slots=True)
class Reminder:
    id: int
    task_id: int
    user_id: str
    scheduled_at: float
    status: ReminderStatus
    channel: str
    timezone: str
    processed_at: float | None
    created_at: float
    updated_at: float

    def is_due(self, now_ts: float) -> bool:
        return self.status == ReminderStatus.SCHEDULED and self.scheduled_at <= now_ts


@dataclass(slots=True, frozen=True)
class TaskInfo:
    task_id: int
    title: str
    description: str | None = None
    due_at: float | None = None
    reminder_enabled: bool = False


@dataclass(slots=True, frozen=True)
class Recipient:
    user_id: str
    contact_address: str | None
    display_name: str | None = None
    matrix_room_id: str | None = None

    def contact_for(self, channel: str) -> str | None:
        """Address usable on the given channel, or None if the recipient has none."""
        if channel == ReminderChannel.MATRIX:
            raw = self.matrix_room_id
        else:
            raw = self.contact_address
        raw = (raw or "").strip()
        return raw or None


@dataclass(slots=True, frozen=True)
class RenderedMessage:
    subject: str
    body: str


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> DeliveryResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> DeliveryResult:
        return cls(ok=False, reason=reason)


class FailureReason(StrEnum):
    RECIPIENT_UNRESOLVABLE = "recipient_unresolvable"
    DELIVERY_FAILED = "delivery_failed"
    MARK_FAILED = "mark_failed"  # delivered but not marked: duplicate risk
    INTERNAL_ERROR = "internal_error"


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    reminder_id: int
    ok: bool
    failure: FailureReason | None = None
    detail: str | None = None


@dataclass(slots=True)
class CycleSummary:
    total: int = 0
    processed: int = 0
    failed: int = 0
    chunks: int = 0
    failures_by_reason: Counter[str] = field(default_factory=Counter)

    def add(self, outcome: DispatchOutcome) -> None:
        self.total += 1
        if outcome.ok:
            self.processed += 1
            return
        self.failed += 1
        if outcome.failure is not None:
            self.failures_by_reason[outcome.failure.value] += 1

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "processed": self.processed,
            "failed": self.failed,
            "chunks": self.chunks,
            "failures": dict(self.failures_by_reason),
        }
