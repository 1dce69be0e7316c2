"""Watch definitions store."""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from GKWatch.core.models import Watch
from GKWatch.utils.log import log
from GKWatch.utils.timeutil import parse_dt, to_db, utc_now

if TYPE_CHECKING:
    from GKWatch.storage.db import DatabaseManager

_WATCH_COLUMNS = (
    "id, display_name, search_terms, filters, enabled_sources, strict, active, notify, priority, "
    "created_at, last_run, last_result_count, sort_order"
)
_UPDATABLE_FIELDS = frozenset(
    {"display_name", "search_terms", "filters", "enabled_sources", "strict", "active", "notify", "priority", "sort_order"}
)


class WatchStore:
    """SQLite store for watches.

    Removing a watch cascades to its results and metadata rows.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.conn = db_manager.get_connection()

    def add(
        self,
        display_name: str | None,
        search_terms: Sequence[str],
        *,
        filters: Sequence[str] = (),
        enabled_sources: Mapping[str, bool] | None = None,
        strict: bool = True,
        notify: bool = True,
        priority: bool = False,
    ) -> Watch:
        """Create a watch, or return the existing duplicate.

        A watch is a duplicate when it has the same set of search terms or
        the same display name.

        Args:
            display_name: Name shown to people; defaults to the first term.
            search_terms: Queries sent to the sources.
            filters: Negative title filters.
            enabled_sources: Per-watch source enable map.
            strict: Whether plain query terms are enforced.
            notify: Whether new items are collected for notifications.
            priority: Whether new items trigger a priority alert.

        Returns:
            Watch: The created or existing watch.

        Raises:
            ValueError: If no non-empty search term is given.
        """
        terms = _clean_terms(search_terms)
        if not terms:
            raise ValueError("A watch needs at least one search term")
        name = (display_name or "").strip() or terms[0]
        wanted = sorted(terms)

        with self.db.transaction() as conn:
            for existing in _select_all(conn):
                if sorted(existing.search_terms) == wanted or existing.display_name == name:
                    log.info("Watch already exists: id=%s name=%s", existing.id, existing.display_name)
                    return existing

            watch = Watch(
                id=uuid.uuid4().hex,
                display_name=name,
                search_terms=tuple(terms),
                filters=tuple(_clean_terms(filters)),
                enabled_sources=dict(enabled_sources or {}),
                strict=strict,
                active=True,
                notify=notify,
                priority=priority,
                created_at=utc_now(),
                sort_order=_next_sort_order(conn),
            )
            _insert(conn, watch)
        log.info("Watch added: id=%s name=%s terms=%d", watch.id, watch.display_name, len(watch.search_terms))
        return watch

    def get(self, watch_id: str) -> Watch | None:
        with self.db.lock:
            row = self.conn.execute(f"SELECT {_WATCH_COLUMNS} FROM watchlist WHERE id = ?", (watch_id,)).fetchone()
        return _row_to_watch(row) if row else None

    def list(self, *, active_only: bool = False) -> list[Watch]:
        """Return watches ordered by sort order, then creation time."""
        with self.db.lock:
            watches = _select_all(self.conn)
        if active_only:
            return [watch for watch in watches if watch.active]
        return watches

    def update(self, watch_id: str, **changes: Any) -> Watch | None:
        """Update editable fields of a watch.

        Raises:
            ValueError: If an unknown field is given or the terms become empty.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown watch fields: {', '.join(sorted(unknown))}")
        if "search_terms" in changes:
            changes["search_terms"] = tuple(_clean_terms(changes["search_terms"]))
            if not changes["search_terms"]:
                raise ValueError("A watch needs at least one search term")
        if "filters" in changes:
            changes["filters"] = tuple(_clean_terms(changes["filters"]))
        if "enabled_sources" in changes:
            changes["enabled_sources"] = dict(changes["enabled_sources"] or {})

        with self.db.transaction() as conn:
            row = conn.execute(f"SELECT {_WATCH_COLUMNS} FROM watchlist WHERE id = ?", (watch_id,)).fetchone()
            if row is None:
                return None
            watch = replace(_row_to_watch(row), **changes)
            if not watch.display_name:
                watch = replace(watch, display_name=watch.search_terms[0])
            conn.execute(
                """
                UPDATE watchlist SET display_name = ?, search_terms = ?, filters = ?, enabled_sources = ?,
                    strict = ?, active = ?, notify = ?, priority = ?, sort_order = ?
                WHERE id = ?
                """,
                (
                    watch.display_name,
                    _dump(list(watch.search_terms)),
                    _dump(list(watch.filters)),
                    _dump(dict(watch.enabled_sources)),
                    int(watch.strict),
                    int(watch.active),
                    int(watch.notify),
                    int(watch.priority),
                    watch.sort_order,
                    watch_id,
                ),
            )
        return watch

    def remove(self, watch_id: str) -> bool:
        """Delete a watch with its results. Returns False when it did not exist."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM watchlist WHERE id = ?", (watch_id,))
        if cursor.rowcount:
            log.info("Watch removed: id=%s", watch_id)
        return cursor.rowcount > 0

    def set_active(self, watch_id: str, active: bool) -> Watch | None:
        return self.update(watch_id, active=active)

    def update_last_run(self, watch_id: str, result_count: int, *, when: datetime | None = None) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE watchlist SET last_run = ?, last_result_count = ? WHERE id = ?",
                (to_db(when or utc_now()), int(result_count), watch_id),
            )

    def merge(self, watch_ids: Sequence[str], display_name: str | None = None) -> Watch | None:
        """Replace several watches by one watch holding the union of their terms.

        The merged watch starts with an empty result set; the originals and
        their results are deleted.

        Returns:
            The merged watch, or None when fewer than two of the ids exist.
        """
        with self.db.transaction() as conn:
            by_id = {watch.id: watch for watch in _select_all(conn)}
            sources = [by_id[watch_id] for watch_id in dict.fromkeys(watch_ids) if watch_id in by_id]
            if len(sources) < 2:
                return None

            terms: list[str] = []
            for watch in sources:
                for term in watch.search_terms:
                    if term not in terms:
                        terms.append(term)

            merged = Watch(
                id=uuid.uuid4().hex,
                display_name=(display_name or "").strip() or sources[0].display_name,
                search_terms=tuple(terms),
                notify=any(watch.notify for watch in sources),
                created_at=utc_now(),
                sort_order=_next_sort_order(conn),
            )
            for watch in sources:
                conn.execute("DELETE FROM watchlist WHERE id = ?", (watch.id,))
            _insert(conn, merged)
        log.info("Watches merged: ids=%s into=%s terms=%d", ",".join(w.id for w in sources), merged.id, len(terms))
        return merged


def _clean_terms(terms: Sequence[str] | str) -> list[str]:
    if isinstance(terms, str):
        terms = [terms]
    cleaned: list[str] = []
    for term in terms:
        text = str(term).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _next_sort_order(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT MAX(sort_order) FROM watchlist").fetchone()
    return 0 if row is None or row[0] is None else int(row[0]) + 1


def _select_all(conn: sqlite3.Connection) -> list[Watch]:
    rows = conn.execute(
        f"SELECT {_WATCH_COLUMNS} FROM watchlist ORDER BY sort_order IS NULL, sort_order ASC, created_at ASC"
    ).fetchall()
    return [_row_to_watch(row) for row in rows]


def _insert(conn: sqlite3.Connection, watch: Watch) -> None:
    conn.execute(
        f"INSERT INTO watchlist ({_WATCH_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            watch.id,
            watch.display_name,
            _dump(list(watch.search_terms)),
            _dump(list(watch.filters)),
            _dump(dict(watch.enabled_sources)),
            int(watch.strict),
            int(watch.active),
            int(watch.notify),
            int(watch.priority),
            to_db(watch.created_at or utc_now()),
            to_db(watch.last_run),
            watch.last_result_count,
            watch.sort_order,
        ),
    )


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _row_to_watch(row: Sequence) -> Watch:
    terms = json.loads(row[2] or "[]")
    enabled = json.loads(row[4] or "{}")
    return Watch(
        id=row[0],
        display_name=row[1] or (terms[0] if terms else ""),
        search_terms=tuple(terms),
        filters=tuple(json.loads(row[3] or "[]")),
        enabled_sources={str(k): bool(v) for k, v in enabled.items()},
        strict=bool(row[5]),
        active=bool(row[6]),
        notify=bool(row[7]),
        priority=bool(row[8]),
        created_at=parse_dt(row[9]),
        last_run=parse_dt(row[10]),
        last_result_count=int(row[11] or 0),
        sort_order=row[12],
    )
