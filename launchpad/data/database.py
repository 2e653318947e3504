"""SQLite connection wrapper shared by every DL*Manager."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from launchpad.core.logging import log


class DatabaseManager:
    """Owns one SQLite connection.

    The connection runs in autocommit mode; :meth:`transaction` opens an
    explicit ``BEGIN IMMEDIATE`` block so a group of row updates commits or
    rolls back together. Nested ``transaction()`` calls join the outer block.
    """

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._tx_depth = 0
        self._lock = threading.RLock()
        self.connect()

    def connect(self) -> Optional[sqlite3.Connection]:
        if self.conn is not None:
            return self.conn
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None,
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self.conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as e:
            log.error(f"❌ Failed to open database {self.db_path}: {e}", source="DatabaseManager")
            self.conn = None
        return self.conn

    def get_cursor(self) -> Optional[sqlite3.Cursor]:
        conn = self.connect()
        return conn.cursor() if conn else None

    def commit(self) -> None:
        # statements autocommit; inside transaction() the outer block commits
        if self.conn is not None and self._tx_depth == 0 and self.conn.in_transaction:
            self.conn.commit()

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        conn = self.connect()
        if conn is None:
            raise sqlite3.OperationalError(f"database unavailable: {self.db_path}")
        with self._lock:
            cursor = conn.cursor()
            if self._tx_depth > 0:
                self._tx_depth += 1
                try:
                    yield cursor
                finally:
                    self._tx_depth -= 1
                return

            cursor.execute("BEGIN IMMEDIATE")
            self._tx_depth = 1
            try:
                yield cursor
            except BaseException:
                self._tx_depth = 0
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                self._tx_depth = 0
                conn.execute("COMMIT")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None


__all__ = ["DatabaseManager"]
