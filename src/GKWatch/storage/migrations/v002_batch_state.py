"""Migration v002: resumable batch state and visible-results index."""

from __future__ import annotations

from GKWatch.storage.migration import Migration

MIGRATION = Migration(
    version=2,
    description="Add batch_state table and results(watch_id, hidden) index",
    sql="""
        CREATE TABLE IF NOT EXISTS batch_state (
          id INTEGER PRIMARY KEY CHECK (id = 1),
          run_type TEXT NOT NULL,
          remaining TEXT NOT NULL,
          total INTEGER NOT NULL,
          started_at TEXT NOT NULL,
          updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_results_watch_hidden
          ON results(watch_id, hidden)
    """,
)
