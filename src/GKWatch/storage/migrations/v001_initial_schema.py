"""Migration v001: initial schema (watchlist, results, results_meta, blocked_items, blacklist)."""

from __future__ import annotations

from GKWatch.storage.migration import Migration

MIGRATION = Migration(
    version=1,
    description="Initial schema: watchlist, results, results_meta, blocked_items, blacklist",
    sql="""
        CREATE TABLE IF NOT EXISTS watchlist (
          id TEXT PRIMARY KEY,
          display_name TEXT NOT NULL,
          search_terms TEXT NOT NULL,
          filters TEXT NOT NULL DEFAULT '[]',
          enabled_sources TEXT NOT NULL DEFAULT '{}',
          strict INTEGER NOT NULL DEFAULT 1,
          active INTEGER NOT NULL DEFAULT 1,
          notify INTEGER NOT NULL DEFAULT 1,
          priority INTEGER NOT NULL DEFAULT 0,
          created_at TEXT NOT NULL,
          last_run TEXT,
          last_result_count INTEGER NOT NULL DEFAULT 0,
          sort_order INTEGER
        );

        CREATE TABLE IF NOT EXISTS results (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          watch_id TEXT NOT NULL,
          link TEXT NOT NULL,
          title TEXT NOT NULL DEFAULT '',
          source TEXT NOT NULL DEFAULT '',
          price TEXT NOT NULL DEFAULT '',
          image TEXT NOT NULL DEFAULT '',
          bid_price TEXT,
          bin_price TEXT,
          end_time TEXT,
          extra TEXT,
          first_seen TEXT NOT NULL,
          last_seen TEXT,
          is_new INTEGER NOT NULL DEFAULT 1,
          hidden INTEGER NOT NULL DEFAULT 0,
          FOREIGN KEY (watch_id) REFERENCES watchlist(id) ON DELETE CASCADE,
          UNIQUE(watch_id, link)
        );

        CREATE TABLE IF NOT EXISTS results_meta (
          watch_id TEXT PRIMARY KEY,
          label TEXT NOT NULL DEFAULT '',
          updated_at TEXT,
          new_count INTEGER NOT NULL DEFAULT 0,
          FOREIGN KEY (watch_id) REFERENCES watchlist(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS blocked_items (
          url TEXT PRIMARY KEY,
          title TEXT NOT NULL DEFAULT '',
          blocked_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS blacklist (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          term TEXT NOT NULL,
          term_norm TEXT NOT NULL UNIQUE,
          created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_results_watch
          ON results(watch_id);

        CREATE INDEX IF NOT EXISTS idx_results_first_seen
          ON results(first_seen)
    """,
)
