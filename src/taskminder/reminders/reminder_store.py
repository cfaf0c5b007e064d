# src/taskminder/reminders/reminder_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from ..core.ports import Clock
from .reminder_models import Reminder, ReminderChannel, ReminderStatus
from .sqlite_base import SqliteStore

logger = logging.getLogger(__name__)


class ReminderStore(SqliteStore):
    """
    SQLite reminder store.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    State transitions are conditional on status = 'scheduled', so a terminal
    reminder is never transitioned twice and processed_at is written once.
    """

    def __init__(self, db_path: str | Path = "reminders.sqlite3", *, clock: Clock = time.time) -> None:
        super().__init__(db_path)
        self._clock = clock
        self._ensure_schema()
        logger.info("ReminderStore ready db=%s total=%s", self._db_path, self.count_reminders())

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    user_id TEXT NOT NULL,
                    scheduled_at REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'scheduled',
                    channel TEXT NOT NULL DEFAULT 'email',
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    processed_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            self._add_missing_columns(
                cur,
                "reminders",
                {
                    "status": "TEXT NOT NULL DEFAULT 'scheduled'",
                    "channel": "TEXT NOT NULL DEFAULT 'email'",
                    "timezone": "TEXT NOT NULL DEFAULT 'UTC'",
                    "processed_at": "REAL",
                    "created_at": "REAL NOT NULL DEFAULT 0",
                    "updated_at": "REAL NOT NULL DEFAULT 0",
                },
            )

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_status_sched ON reminders(status, scheduled_at)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_user_status ON reminders(user_id, status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_task_sched ON reminders(task_id, scheduled_at)")
            conn.commit()

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            user_id=str(row["user_id"]),
            scheduled_at=float(row["scheduled_at"]),
            status=ReminderStatus.from_db(row["status"]),
            channel=str(row["channel"] or ReminderChannel.EMAIL.value),
            timezone=str(row["timezone"] or "UTC"),
            processed_at=float(row["processed_at"]) if row["processed_at"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _get(self, conn: sqlite3.Connection, reminder_id: int) -> Reminder | None:
        row = conn.execute("SELECT * FROM reminders WHERE id = ?", (int(reminder_id),)).fetchone()
        return self._row_to_reminder(row) if row else None

    # ---- engine API ----

    def fetch_due(self, now_ts: float) -> list[Reminder]:
        """
        Return every scheduled reminder with scheduled_at <= now_ts.

        Ordered earliest-due first; ties broken by id so scans are reproducible.
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM reminders
                WHERE status = 'scheduled'
                  AND scheduled_at <= ?
                ORDER BY scheduled_at ASC, id ASC
                """,
                (float(now_ts),),
            ).fetchall()
            return [self._row_to_reminder(r) for r in rows]

    def mark_sent(self, reminder_id: int, processed_at: float) -> Reminder | None:
        """scheduled -> sent. Returns the updated row, or None if missing or no longer scheduled."""
        return self._transition(reminder_id, ReminderStatus.SENT, float(processed_at))

    def mark_cancelled(self, reminder_id: int) -> Reminder | None:
        """scheduled -> cancelled. Returns the updated row, or None if missing or no longer scheduled."""
        return self._transition(reminder_id, ReminderStatus.CANCELLED, self._clock())

    def _transition(self, reminder_id: int, new_status: ReminderStatus, processed_at: float) -> Reminder | None:
        with self._connection() as conn:
            cur = conn.execute(
                """
                UPDATE reminders
                SET status = ?, processed_at = ?, updated_at = ?
                WHERE id = ?
                  AND status = 'scheduled'
                """,
                (new_status.value, processed_at, self._clock(), int(reminder_id)),
            )
            conn.commit()
            if cur.rowcount != 1:
                logger.debug("Reminder %s not transitioned to %s (missing or terminal)", reminder_id, new_status)
                return None
            return self._get(conn, reminder_id)

    # ---- producer-side API ----

    def count_reminders(self) -> int:
        with self._connection() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM reminders").fetchone()
            return int(n)

    def schedule_reminder(
        self,
        *,
        task_id: int,
        user_id: str,
        scheduled_at: float,
        timezone: str,
        channel: str = ReminderChannel.EMAIL.value,
    ) -> Reminder:
        if not str(user_id).strip():
            raise ValueError("user_id is required")
        if not timezone or not timezone.strip():
            raise ValueError("timezone is required")

        now = self._clock()
        with self._connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO reminders(
                    task_id, user_id, scheduled_at, status, channel, timezone,
                    processed_at, created_at, updated_at
                )
                VALUES (?, ?, ?, 'scheduled', ?, ?, NULL, ?, ?)
                """,
                (int(task_id), str(user_id), float(scheduled_at), channel, timezone.strip(), now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for reminders insert")
            reminder = self._get(conn, rowid)
            if reminder is None:
                raise RuntimeError(f"Reminder {rowid} vanished right after insert")
            logger.debug(
                "Reminder scheduled id=%s task_id=%s user_id=%s at=%s channel=%s",
                reminder.id,
                task_id,
                user_id,
                scheduled_at,
                channel,
            )
            return reminder

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        with self._connection() as conn:
            return self._get(conn, reminder_id)

    def list_for_task(self, task_id: int) -> list[Reminder]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM reminders WHERE task_id = ? ORDER BY scheduled_at ASC, id ASC",
                (int(task_id),),
            ).fetchall()
            return [self._row_to_reminder(r) for r in rows]

    def delete_reminder(self, reminder_id: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM reminders WHERE id = ?", (int(reminder_id),))
            conn.commit()
            return cur.rowcount == 1

    def delete_for_task(self, task_id: int) -> int:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM reminders WHERE task_id = ?", (int(task_id),))
            conn.commit()
            return int(cur.rowcount)
