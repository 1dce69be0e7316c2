"""Storage layer for GKWatch.

Provides database management, watch definitions, reconciled result sets,
exclusion lists and batch checkpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from GKWatch.storage.batch_state import BatchState, BatchStateStore
from GKWatch.storage.blocklist import BlacklistStore, BlockedItemStore
from GKWatch.storage.db import DatabaseManager
from GKWatch.storage.migration import run_migrations
from GKWatch.storage.results import SqliteResultStore
from GKWatch.storage.watchlist import WatchStore
from GKWatch.utils.log import log

if TYPE_CHECKING:
    from GKWatch.config import AppConfig


@dataclass(slots=True)
class Storage:
    """All stores sharing one database manager."""

    db_manager: DatabaseManager
    watches: WatchStore
    results: SqliteResultStore
    blacklist: BlacklistStore
    blocked: BlockedItemStore
    batch_state: BatchStateStore

    def close(self) -> None:
        self.db_manager.close()


def create_storage(config: AppConfig) -> Storage:
    """Open the configured database and build every store.

    Args:
        config: Application configuration containing storage and grace settings.

    Returns:
        Storage bundle; call ``close()`` when done.
    """
    db_path = Path(config.storage.db_path)
    db_manager = DatabaseManager(db_path)
    log.info("State storage enabled: %s", db_path)
    return Storage(
        db_manager=db_manager,
        watches=WatchStore(db_manager),
        results=SqliteResultStore(db_manager, policy=config.grace.to_policy()),
        blacklist=BlacklistStore(db_manager),
        blocked=BlockedItemStore(db_manager),
        batch_state=BatchStateStore(db_manager),
    )


__all__ = [
    "BatchState",
    "BatchStateStore",
    "BlacklistStore",
    "BlockedItemStore",
    "DatabaseManager",
    "SqliteResultStore",
    "Storage",
    "WatchStore",
    "create_storage",
    "run_migrations",
]
