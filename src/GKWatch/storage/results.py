"""Persisted watch results and reconciliation."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Sequence

from GKWatch.core.errors import StorageError
from GKWatch.core.grace import DEFAULT_GRACE_POLICY, GracePolicy
from GKWatch.core.models import Item, PersistedResult, ResultsMeta, SaveOutcome
from GKWatch.core.reconcile import ReconcilePlan, reconcile
from GKWatch.utils.log import log
from GKWatch.utils.timeutil import as_utc, parse_dt, to_db, utc_now

if TYPE_CHECKING:
    from GKWatch.storage.db import DatabaseManager

_RESULT_COLUMNS = (
    "watch_id, link, title, source, price, image, bid_price, bin_price, end_time, extra, "
    "first_seen, last_seen, is_new, hidden"
)

_UPSERT_SQL = f"""
    INSERT INTO results ({_RESULT_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(watch_id, link) DO UPDATE SET
        title = excluded.title,
        source = excluded.source,
        price = excluded.price,
        image = excluded.image,
        bid_price = excluded.bid_price,
        bin_price = excluded.bin_price,
        end_time = excluded.end_time,
        extra = excluded.extra,
        first_seen = excluded.first_seen,
        last_seen = excluded.last_seen,
        is_new = excluded.is_new,
        hidden = excluded.hidden
"""


class SqliteResultStore:
    """SQLite-backed result sets, one per watch.

    ``save_results`` is the only writer of reconciliation state. It reads the
    watch's rows, computes a plan with :func:`GKWatch.core.reconcile.reconcile`
    and applies it inside a single ``BEGIN IMMEDIATE`` transaction, so no
    reader ever observes a half-applied pass.
    """

    def __init__(self, db_manager: DatabaseManager, policy: GracePolicy = DEFAULT_GRACE_POLICY):
        """Initialize result store.

        Args:
            db_manager: Shared database manager instance.
            policy: Grace policy used to classify sources.
        """
        log.debug("Initializing SqliteResultStore")
        self.db = db_manager
        self.conn = db_manager.get_connection()
        self.policy = policy

    def load(self, watch_id: str) -> list[PersistedResult]:
        """Return every stored row of a watch, hidden ones included."""
        with self.db.lock:
            return _load_rows(self.conn, watch_id)

    def save_results(
        self,
        watch_id: str,
        fresh: Sequence[Item],
        *,
        label: str = "",
        now: datetime | None = None,
    ) -> SaveOutcome:
        """Reconcile a fresh candidate set with the stored rows of a watch.

        Args:
            watch_id: Watch whose result set is replaced.
            fresh: Candidates of this pass, merged across search terms.
            label: Display label kept in the metadata row.
            now: Reference time; defaults to the current UTC time.

        Returns:
            SaveOutcome: Newly inserted items and row counts.

        Raises:
            StorageError: If any statement fails. The transaction is rolled
                back and the stored rows are unchanged.
        """
        now = as_utc(now) if now is not None else utc_now()
        try:
            with self.db.transaction() as conn:
                existing = _load_rows(conn, watch_id)
                plan = reconcile(watch_id, existing, fresh, now=now, policy=self.policy)
                self._apply_plan(conn, watch_id, plan)
                new_count = _refresh_meta(conn, watch_id, label=label, updated_at=now)
                visible = conn.execute(
                    "SELECT COUNT(*) FROM results WHERE watch_id = ? AND hidden = 0",
                    (watch_id,),
                ).fetchone()[0]
        except sqlite3.Error as error:
            raise StorageError(f"Saving results failed for watch {watch_id}: {error}", watch_id=watch_id) from error

        for source in sorted(plan.unclassified_sources):
            log.warning(
                "No grace policy for source, deleting vanished rows immediately: watch=%s source=%r",
                watch_id,
                source,
            )
        if plan.hides:
            log.info("Grace period kept hidden rows: watch=%s count=%d", watch_id, len(plan.hides))
        log.info(
            "Saved results: watch=%s new=%d visible=%d deleted=%d new_count=%d",
            watch_id,
            len(plan.new_items),
            visible,
            len(plan.deletes),
            new_count,
        )
        return SaveOutcome(
            new_items=tuple(plan.new_items),
            visible_count=visible,
            hidden_count=len(plan.hides),
            deleted_count=len(plan.deletes),
        )

    def _apply_plan(self, conn: sqlite3.Connection, watch_id: str, plan: ReconcilePlan) -> None:
        for row in plan.upserts:
            conn.execute(_UPSERT_SQL, _row_params(row))
        for row in plan.hides:
            conn.execute(
                "UPDATE results SET hidden = 1, is_new = 0 WHERE watch_id = ? AND link = ?",
                (watch_id, row.link),
            )
        for link in plan.deletes:
            conn.execute("DELETE FROM results WHERE watch_id = ? AND link = ?", (watch_id, link))

    def clear_new_flags(self, watch_id: str) -> int:
        """Acknowledge every result of one watch.

        Returns:
            Number of rows whose flag was cleared.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE results SET is_new = 0 WHERE watch_id = ? AND is_new = 1",
                (watch_id,),
            )
            conn.execute("UPDATE results_meta SET new_count = 0 WHERE watch_id = ?", (watch_id,))
        log.debug("Cleared new flags: watch=%s rows=%d", watch_id, cursor.rowcount)
        return cursor.rowcount

    def mark_all_seen(self) -> int:
        """Acknowledge every result of every watch."""
        with self.db.transaction() as conn:
            cursor = conn.execute("UPDATE results SET is_new = 0 WHERE is_new = 1")
            conn.execute("UPDATE results_meta SET new_count = 0")
        log.info("Marked all results seen: rows=%d", cursor.rowcount)
        return cursor.rowcount

    def get_results(self, watch_id: str, *, include_hidden: bool = False) -> list[PersistedResult]:
        """Return a watch's rows, new first, then most recently discovered."""
        query = f"SELECT {_RESULT_COLUMNS} FROM results WHERE watch_id = ?"
        if not include_hidden:
            query += " AND hidden = 0"
        query += " ORDER BY is_new DESC, first_seen DESC, id DESC"
        with self.db.lock:
            rows = self.conn.execute(query, (watch_id,)).fetchall()
        return [_row_to_result(row) for row in rows]

    def get_meta(self, watch_id: str) -> ResultsMeta | None:
        with self.db.lock:
            row = self.conn.execute(
                "SELECT watch_id, updated_at, new_count FROM results_meta WHERE watch_id = ?",
                (watch_id,),
            ).fetchone()
        if row is None:
            return None
        return ResultsMeta(watch_id=row[0], updated_at=parse_dt(row[1]), new_count=int(row[2]))

    def get_new_counts(self) -> dict[str, int]:
        """Return ``{watch_id: new_count}`` for watches with unseen results."""
        with self.db.lock:
            rows = self.conn.execute(
                "SELECT watch_id, new_count FROM results_meta WHERE new_count > 0"
            ).fetchall()
        return {row[0]: int(row[1]) for row in rows}

    def cleanup_expired(self, max_age_days: float, *, now: datetime | None = None) -> int:
        """Delete rows not confirmed by any pass for longer than the retention window.

        The window of a row is ``max_age_days`` or its family's grace window,
        whichever is longer, so cleanup never purges a hidden row the grace
        policy still keeps. A row of a timed family is confirmed at its
        ``last_seen``. Untimed and unclassified rows are deleted by
        reconciliation as soon as they vanish, so a surviving one was present
        in its watch's latest pass and is confirmed at that pass.
        Placeholder rows always age from ``last_seen``/``first_seen``.
        New counts of every affected watch are recomputed.

        Returns:
            Number of deleted rows.
        """
        now = as_utc(now) if now is not None else utc_now()
        max_age = timedelta(days=max_age_days)
        with self.db.transaction() as conn:
            rows = conn.execute(
                """
                SELECT r.id, r.watch_id, r.title, r.source, r.first_seen, r.last_seen, r.hidden, m.updated_at
                FROM results r LEFT JOIN results_meta m ON m.watch_id = r.watch_id
                """
            ).fetchall()
            expired: list[tuple[int, str]] = []
            for row_id, watch_id, title, source, first_seen, last_seen, hidden, reconciled_at in rows:
                family = self.policy.family_for(source)
                confirmed = parse_dt(last_seen) or parse_dt(first_seen) or now
                if not hidden and not self.policy.is_placeholder(title) and (family is None or not family.timed):
                    confirmed = max(confirmed, parse_dt(reconciled_at) or confirmed)
                window = max(max_age, family.grace) if family is not None else max_age
                if now - confirmed > window:
                    expired.append((row_id, watch_id))
            for row_id, _ in expired:
                conn.execute("DELETE FROM results WHERE id = ?", (row_id,))
            for watch_id in sorted({watch_id for _, watch_id in expired}):
                _refresh_meta(conn, watch_id)
        if expired:
            log.info("Cleaned up expired results: rows=%d max_age_days=%s", len(expired), max_age_days)
        return len(expired)


def _load_rows(conn: sqlite3.Connection, watch_id: str) -> list[PersistedResult]:
    rows = conn.execute(
        f"SELECT {_RESULT_COLUMNS} FROM results WHERE watch_id = ? ORDER BY id",
        (watch_id,),
    ).fetchall()
    return [_row_to_result(row) for row in rows]


def _refresh_meta(
    conn: sqlite3.Connection,
    watch_id: str,
    *,
    label: str = "",
    updated_at: datetime | None = None,
) -> int:
    """Recompute the denormalized new count; bump ``updated_at`` when given."""
    new_count = conn.execute(
        "SELECT COUNT(*) FROM results WHERE watch_id = ? AND is_new = 1",
        (watch_id,),
    ).fetchone()[0]
    conn.execute(
        """
        INSERT INTO results_meta (watch_id, label, updated_at, new_count)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(watch_id) DO UPDATE SET
            label = CASE WHEN excluded.label <> '' THEN excluded.label ELSE results_meta.label END,
            updated_at = COALESCE(excluded.updated_at, results_meta.updated_at),
            new_count = excluded.new_count
        """,
        (watch_id, label, to_db(updated_at), new_count),
    )
    return int(new_count)


def _row_params(row: PersistedResult) -> tuple:
    item = row.item
    extra = json.dumps(dict(item.extra), ensure_ascii=False, default=str) if item.extra else None
    return (
        row.watch_id,
        item.link,
        item.title,
        item.source,
        item.price,
        item.image,
        item.bid_price,
        item.bin_price,
        item.end_time,
        extra,
        to_db(row.first_seen),
        to_db(row.last_seen),
        1 if row.is_new else 0,
        1 if row.hidden else 0,
    )


def _row_to_result(row: Sequence) -> PersistedResult:
    extra = json.loads(row[9]) if row[9] else {}
    item = Item(
        title=row[2] or "",
        link=row[1],
        source=row[3] or "",
        price=row[4] or "",
        image=row[5] or "",
        bid_price=row[6],
        bin_price=row[7],
        end_time=row[8],
        extra=extra if isinstance(extra, dict) else {},
    )
    first_seen = parse_dt(row[10])
    assert first_seen is not None
    return PersistedResult(
        watch_id=row[0],
        item=item,
        first_seen=first_seen,
        last_seen=parse_dt(row[11]),
        is_new=bool(row[12]),
        hidden=bool(row[13]),
    )
