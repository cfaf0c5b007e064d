# src/taskminder/reminders/sqlite_base.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from .reminder_models import StoreUnavailable

logger = logging.getLogger(__name__)


class SqliteStore:
    """
    Shared plumbing for the SQLite adapters.

    Thread-safety:
    - each call opens its own SQLite connection, so methods can run in worker threads

    Any sqlite3.Error surfaces as StoreUnavailable.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreUnavailable(f"{self._db_path}: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _add_missing_columns(cur: sqlite3.Cursor, table: str, columns: dict[str, str]) -> None:
        """Migration helper: ALTER TABLE only for columns an older DB does not have yet."""
        cur.execute(f"PRAGMA table_info({table})")
        existing = {row["name"] for row in cur.fetchall()}
        for name, decl in columns.items():
            if name in existing:
                continue
            cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
            logger.info("%s migration: added column %s", table, name)
