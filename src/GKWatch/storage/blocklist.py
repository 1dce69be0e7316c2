"""User exclusion lists: global title blacklist and individually blocked listings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Sequence

from GKWatch.core.models import Item
from GKWatch.utils.log import log
from GKWatch.utils.timeutil import parse_dt, to_db, utc_now

if TYPE_CHECKING:
    from GKWatch.storage.db import DatabaseManager


@dataclass(frozen=True, slots=True)
class BlacklistEntry:
    id: int
    term: str
    created_at: datetime | None


@dataclass(frozen=True, slots=True)
class BlockedItem:
    url: str
    title: str
    blocked_at: datetime | None


class BlacklistStore:
    """Global title blacklist.

    Terms are matched as case-insensitive substrings of listing titles and
    apply to every watch.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.conn = db_manager.get_connection()

    def add(self, term: str) -> BlacklistEntry | None:
        """Add a term. Returns None for blank or already listed terms."""
        trimmed = (term or "").strip()
        if not trimmed:
            return None
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO blacklist (term, term_norm, created_at) VALUES (?, ?, ?)",
                (trimmed, trimmed.lower(), to_db(utc_now())),
            )
            if not cursor.rowcount:
                return None
            row = conn.execute(
                "SELECT id, term, created_at FROM blacklist WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        log.info("Blacklist term added: %s", trimmed)
        return BlacklistEntry(id=row[0], term=row[1], created_at=parse_dt(row[2]))

    def remove(self, term: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM blacklist WHERE term_norm = ?", ((term or "").strip().lower(),))
        return cursor.rowcount > 0

    def list(self) -> list[BlacklistEntry]:
        with self.db.lock:
            rows = self.conn.execute(
                "SELECT id, term, created_at FROM blacklist ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [BlacklistEntry(id=row[0], term=row[1], created_at=parse_dt(row[2])) for row in rows]

    def replace_all(self, terms: Iterable[str]) -> list[BlacklistEntry]:
        """Replace the whole blacklist atomically."""
        now = to_db(utc_now())
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM blacklist")
            for term in terms:
                trimmed = (term or "").strip()
                if trimmed:
                    conn.execute(
                        "INSERT OR IGNORE INTO blacklist (term, term_norm, created_at) VALUES (?, ?, ?)",
                        (trimmed, trimmed.lower(), now),
                    )
        return self.list()

    def is_blacklisted(self, title: str | None) -> bool:
        if not title:
            return False
        lowered = title.lower()
        return any(term in lowered for term in self._terms())

    def filter_results(self, items: Sequence[Item]) -> list[Item]:
        """Drop items whose title contains any blacklisted term."""
        terms = self._terms()
        if not terms:
            return list(items)
        kept = [item for item in items if not any(term in (item.title or "").lower() for term in terms)]
        if len(kept) != len(items):
            log.debug("Blacklist removed %d items", len(items) - len(kept))
        return kept

    def _terms(self) -> list[str]:
        with self.db.lock:
            return [row[0] for row in self.conn.execute("SELECT term_norm FROM blacklist").fetchall()]


class BlockedItemStore:
    """Listings the user blocked by URL."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.conn = db_manager.get_connection()

    def add(self, url: str, title: str = "") -> BlockedItem | None:
        """Block a listing URL. Returns None when blank or already blocked."""
        url = (url or "").strip()
        if not url:
            return None
        blocked_at = utc_now()
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO blocked_items (url, title, blocked_at) VALUES (?, ?, ?)",
                (url, title or "", to_db(blocked_at)),
            )
        if not cursor.rowcount:
            return None
        log.info("Listing blocked: %s", url)
        return BlockedItem(url=url, title=title or "", blocked_at=blocked_at)

    def remove(self, url: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM blocked_items WHERE url = ?", (url,))
        return cursor.rowcount > 0

    def list(self) -> list[BlockedItem]:
        with self.db.lock:
            rows = self.conn.execute(
                "SELECT url, title, blocked_at FROM blocked_items ORDER BY blocked_at DESC"
            ).fetchall()
        return [BlockedItem(url=row[0], title=row[1], blocked_at=parse_dt(row[2])) for row in rows]

    def is_blocked(self, url: str) -> bool:
        with self.db.lock:
            row = self.conn.execute("SELECT 1 FROM blocked_items WHERE url = ?", (url,)).fetchone()
        return row is not None

    def filter_results(self, items: Sequence[Item]) -> list[Item]:
        """Drop items whose link is blocked."""
        with self.db.lock:
            blocked = {row[0] for row in self.conn.execute("SELECT url FROM blocked_items").fetchall()}
        if not blocked:
            return list(items)
        return [item for item in items if item.link not in blocked]
