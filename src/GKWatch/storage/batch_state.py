"""Persisted progress of an interrupted batch run."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from GKWatch.utils.timeutil import parse_dt, to_db, utc_now

if TYPE_CHECKING:
    from GKWatch.storage.db import DatabaseManager


@dataclass(frozen=True, slots=True)
class BatchState:
    """Resume point of a batch run.

    Attributes:
        run_type: Trigger of the run (e.g. "manual", "scheduled").
        remaining: Watch ids not yet processed, in order.
        total: Number of watches in the original run.
        started_at: Start of the original run.
        updated_at: Time of the last checkpoint.
    """

    run_type: str
    remaining: tuple[str, ...]
    total: int
    started_at: datetime
    updated_at: datetime


class BatchStateStore:
    """Single-row store for the current batch checkpoint."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.conn = db_manager.get_connection()

    def save(
        self,
        run_type: str,
        remaining: Sequence[str],
        *,
        total: int,
        started_at: datetime,
        now: datetime | None = None,
    ) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO batch_state (id, run_type, remaining, total, started_at, updated_at)
                VALUES (1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    run_type = excluded.run_type,
                    remaining = excluded.remaining,
                    total = excluded.total,
                    started_at = excluded.started_at,
                    updated_at = excluded.updated_at
                """,
                (run_type, json.dumps(list(remaining)), int(total), to_db(started_at), to_db(now or utc_now())),
            )

    def load(self) -> BatchState | None:
        with self.db.lock:
            row = self.conn.execute(
                "SELECT run_type, remaining, total, started_at, updated_at FROM batch_state WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        started_at = parse_dt(row[3])
        updated_at = parse_dt(row[4])
        if started_at is None or updated_at is None:
            return None
        return BatchState(
            run_type=row[0],
            remaining=tuple(json.loads(row[1] or "[]")),
            total=int(row[2]),
            started_at=started_at,
            updated_at=updated_at,
        )

    def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM batch_state")
