"""Tests for schema migration mechanism.

Covers:
  1. Fresh database: all tables created, schema_version written
  2. Already up to date: second run executes no DDL
  3. New migration: applied to an existing DB, old data intact
  4. Broken migration SQL: transaction rolled back, version unchanged
Plus: version-gap validation raises ValueError at startup.
"""

import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

import GKWatch.storage.migration as migration_module
from GKWatch.storage.migration import MIGRATIONS, Migration, run_migrations


def _connect(path: Path) -> sqlite3.Connection:
    return sqlite3.connect(str(path))


def _current_version(conn: sqlite3.Connection) -> int:
    row = conn.execute(
        "SELECT version FROM schema_version WHERE id = 1"
    ).fetchone()
    return row[0] if row else 0


def _table_names(conn: sqlite3.Connection) -> set[str]:
    return {
        row[0]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
    }


_LATEST_VERSION = max(m.version for m in MIGRATIONS)


class TestMigrationDiscovery(unittest.TestCase):
    def test_migrations_are_consecutive(self) -> None:
        self.assertEqual([m.version for m in MIGRATIONS], list(range(1, _LATEST_VERSION + 1)))


class TestFreshDatabase(unittest.TestCase):
    """First run on a database file that does not yet exist."""

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self._conn = _connect(Path(self._tmpdir.name) / "gkwatch.db")

    def tearDown(self):
        self._conn.close()
        self._tmpdir.cleanup()

    def test_schema_version_equals_latest(self):
        run_migrations(self._conn)
        self.assertEqual(_current_version(self._conn), _LATEST_VERSION)

    def test_main_tables_created(self):
        run_migrations(self._conn)
        tables = _table_names(self._conn)
        for name in ("watchlist", "results", "results_meta", "blocked_items", "blacklist", "batch_state"):
            with self.subTest(table=name):
                self.assertIn(name, tables)


class TestAlreadyUpToDate(unittest.TestCase):
    """Second run after DB is already at the latest version."""

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self._conn = _connect(Path(self._tmpdir.name) / "gkwatch.db")
        run_migrations(self._conn)

    def tearDown(self):
        self._conn.close()
        self._tmpdir.cleanup()

    def test_version_unchanged_on_second_run(self):
        version_before = _current_version(self._conn)
        run_migrations(self._conn)
        self.assertEqual(_current_version(self._conn), version_before)

    def test_no_new_tables_on_second_run(self):
        tables_before = _table_names(self._conn)
        run_migrations(self._conn)
        self.assertEqual(_table_names(self._conn), tables_before)


class TestNewMigration(unittest.TestCase):
    """Simulated next migration applied to a database at the latest version."""

    _NEXT = Migration(
        version=_LATEST_VERSION + 1,
        description="Add note column to watchlist",
        sql="ALTER TABLE watchlist ADD COLUMN note TEXT;",
    )

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self._conn = _connect(Path(self._tmpdir.name) / "gkwatch.db")
        run_migrations(self._conn)
        self._conn.execute(
            "INSERT INTO watchlist (id, display_name, search_terms, created_at) VALUES (?, ?, ?, ?)",
            ("w1", "Saber", '["セイバー"]', "2026-10-01T00:00:00+00:00"),
        )
        self._conn.commit()

    def tearDown(self):
        self._conn.close()
        self._tmpdir.cleanup()

    def test_version_advances(self):
        with patch.object(migration_module, "MIGRATIONS", list(MIGRATIONS) + [self._NEXT]):
            run_migrations(self._conn)
        self.assertEqual(_current_version(self._conn), _LATEST_VERSION + 1)

    def test_new_column_exists_and_data_preserved(self):
        with patch.object(migration_module, "MIGRATIONS", list(MIGRATIONS) + [self._NEXT]):
            run_migrations(self._conn)
        row = self._conn.execute("SELECT display_name, note FROM watchlist WHERE id = 'w1'").fetchone()
        self.assertEqual(row[0], "Saber")
        self.assertIsNone(row[1])


class TestRollbackOnError(unittest.TestCase):
    """Bad migration SQL causes exception; version number must not change."""

    _BAD = Migration(
        version=_LATEST_VERSION + 1,
        description="Intentionally broken migration",
        sql="CREATE TABLE half_done (id INTEGER); THIS IS NOT VALID SQL;",
    )

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self._conn = _connect(Path(self._tmpdir.name) / "gkwatch.db")
        run_migrations(self._conn)

    def tearDown(self):
        self._conn.close()
        self._tmpdir.cleanup()

    def test_version_and_tables_unchanged_after_bad_migration(self):
        version_before = _current_version(self._conn)
        with patch.object(migration_module, "MIGRATIONS", list(MIGRATIONS) + [self._BAD]):
            with self.assertRaises(sqlite3.Error):
                run_migrations(self._conn)
        self.assertEqual(_current_version(self._conn), version_before)
        self.assertNotIn("half_done", _table_names(self._conn))


class TestVersionContinuityValidation(unittest.TestCase):
    """run_migrations raises ValueError if MIGRATIONS has a version gap."""

    def test_gap_raises_value_error(self):
        gap_migrations = list(MIGRATIONS) + [
            Migration(
                version=_LATEST_VERSION + 2,
                description="Gap migration",
                sql="SELECT 1;",
            )
        ]
        with tempfile.TemporaryDirectory() as tmpdir:
            conn = _connect(Path(tmpdir) / "gkwatch.db")
            try:
                with patch.object(migration_module, "MIGRATIONS", gap_migrations):
                    with self.assertRaises(ValueError):
                        run_migrations(conn)
            finally:
                conn.close()


if __name__ == "__main__":
    unittest.main()
