"""SQLite database utilities."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from GKWatch.storage.migration import run_migrations


class DatabaseManager:
    """Shared database connection manager.

    Uses singleton pattern to ensure only one connection is created per process.
    The connection runs in autocommit mode and is shared across worker
    threads; every multi-statement write goes through ``transaction()``, which
    holds ``lock`` for its whole duration so read-modify-write sequences never
    interleave.

    Supports context manager protocol for automatic connection cleanup.
    """

    _instance = None

    def __new__(cls, db_path: Path):
        """Create or return existing DatabaseManager instance.

        Args:
            db_path: Absolute path or project-relative path to database file.

        Returns:
            DatabaseManager singleton instance.
        """
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.db_path = Path(db_path)
            instance.lock = threading.RLock()
            instance.conn = ensure_db(instance.db_path)
            run_migrations(instance.conn)
            cls._instance = instance
        return cls._instance

    def get_connection(self) -> sqlite3.Connection:
        """Get the shared database connection.

        Returns:
            SQLite connection.
        """
        return self.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

        Rolls back and re-raises on any exception. Nested use from the same
        thread joins the outer transaction.

        Yields:
            The shared connection.
        """
        with self.lock:
            if self.conn.in_transaction:
                yield self.conn
                return
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            self.conn.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection and reset singleton instance.

        This ensures the connection is properly closed and allows creating
        a new instance with a different database path if needed.
        """
        if hasattr(self, "conn") and self.conn:
            self.conn.close()
            type(self)._instance = None

    def __enter__(self) -> DatabaseManager:
        """Enter context manager.

        Returns:
            Self for use in with statement.
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and close connection."""
        self.close()


def ensure_db(db_path: Path) -> sqlite3.Connection:
    """Ensure database file exists and return an autocommit connection.

    Args:
        db_path: Absolute path or project-relative path to database file.

    Returns:
        SQLite connection with foreign keys enforced.

    Raises:
        OSError: If directory creation fails.
        sqlite3.Error: If database connection fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn
