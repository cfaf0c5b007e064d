# src/taskminder/reminders/directory_store.py

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from pathlib import Path

from .reminder_models import Recipient, TaskInfo
from .sqlite_base import SqliteStore

logger = logging.getLogger(__name__)


class DirectoryStore(SqliteStore):
    """
    SQLite-backed task/user directory.

    The reminder engine only reads from it (get_task / get_recipient). The write
    helpers exist for the task collaborator, local runs and tests.
    """

    def __init__(self, db_path: str | Path = "reminders.sqlite3") -> None:
        super().__init__(db_path)
        self._ensure_schema()
        logger.info("DirectoryStore ready db=%s", self._db_path)

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    email TEXT,
                    matrix_room_id TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    due_at REAL,
                    reminder_enabled INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            self._add_missing_columns(cur, "users", {"matrix_room_id": "TEXT"})
            self._add_missing_columns(cur, "tasks", {"reminder_enabled": "INTEGER NOT NULL DEFAULT 0"})
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id)")
            cur.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email ON users(email)")
            conn.commit()

    # ---- lookups used by the dispatcher ----

    def get_task(self, task_id: int) -> TaskInfo | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, title, description, due_at, reminder_enabled FROM tasks WHERE id = ?",
                (int(task_id),),
            ).fetchone()
            if row is None:
                return None
            return TaskInfo(
                task_id=int(row["id"]),
                title=str(row["title"] or ""),
                description=row["description"],
                due_at=float(row["due_at"]) if row["due_at"] is not None else None,
                reminder_enabled=bool(row["reminder_enabled"]),
            )

    def get_recipient(self, user_id: str) -> Recipient | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, name, email, matrix_room_id FROM users WHERE id = ?",
                (str(user_id),),
            ).fetchone()
            if row is None:
                return None
            return Recipient(
                user_id=str(row["id"]),
                contact_address=row["email"],
                display_name=row["name"],
                matrix_room_id=row["matrix_room_id"],
            )

    # ---- write helpers ----

    def add_user(
        self,
        *,
        name: str,
        email: str | None,
        user_id: str | None = None,
        matrix_room_id: str | None = None,
    ) -> str:
        uid = user_id or uuid.uuid4().hex
        now = time.time()
        normalized = email.strip().lower() if email else None
        with self._connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users(id, name, email, matrix_room_id, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (uid, name.strip(), normalized, matrix_room_id, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"user already exists: {e}") from e
            conn.commit()
        return uid

    def add_task(
        self,
        *,
        user_id: str,
        title: str,
        description: str | None = None,
        due_at: float | None = None,
        reminder_enabled: bool = False,
    ) -> int:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        with self._connection() as conn:
            cur = conn.execute(
                """
                INSERT INTO tasks(user_id, title, description, due_at, reminder_enabled, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (str(user_id), title.strip(), description, due_at, int(bool(reminder_enabled)), now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            return int(rowid)

    def delete_task(self, task_id: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            return cur.rowcount == 1
