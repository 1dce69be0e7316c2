"""Tests for reconciled result persistence."""

import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GKWatch.core.errors import StorageError
from GKWatch.core.models import Item
from GKWatch.storage.db import DatabaseManager
from GKWatch.storage.results import SqliteResultStore
from GKWatch.storage.watchlist import WatchStore

T0 = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _item(link: str, title: str | None = None, source: str = "Yahoo Auctions") -> Item:
    return Item(title=title or f"セイバー ガレキ {link}", link=link, source=source, price="¥1,000")


class TestSqliteResultStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.db = DatabaseManager(Path(self._tmpdir.name) / "gkwatch.db")
        self.watches = WatchStore(self.db)
        self.store = SqliteResultStore(self.db)
        self.watch = self.watches.add("Saber", ["セイバー"])

    def tearDown(self) -> None:
        self.db.close()
        self._tmpdir.cleanup()

    def test_first_save_marks_everything_new(self) -> None:
        outcome = self.store.save_results(self.watch.id, [_item("L1"), _item("L2")], label="Saber", now=T0)
        self.assertEqual([item.link for item in outcome.new_items], ["L1", "L2"])
        self.assertEqual(outcome.visible_count, 2)
        rows = self.store.get_results(self.watch.id)
        self.assertEqual(len(rows), 2)
        self.assertTrue(all(row.is_new for row in rows))
        self.assertEqual(rows[0].item.price, "¥1,000")
        self.assertEqual(self.store.get_meta(self.watch.id).new_count, 2)

    def test_vanished_row_inside_grace_is_hidden(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1", source="Yahoo")], now=T0)
        outcome = self.store.save_results(self.watch.id, [], now=T0 + timedelta(seconds=1))
        self.assertEqual(outcome.hidden_count, 1)
        self.assertEqual(outcome.visible_count, 0)
        self.assertEqual(self.store.get_results(self.watch.id), [])
        rows = self.store.get_results(self.watch.id, include_hidden=True)
        self.assertEqual(len(rows), 1)
        self.assertTrue(rows[0].hidden)

    def test_vanished_row_past_grace_is_deleted(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1", source="Yahoo")], now=T0 - timedelta(days=4))
        outcome = self.store.save_results(self.watch.id, [], now=T0)
        self.assertEqual(outcome.deleted_count, 1)
        self.assertEqual(self.store.get_results(self.watch.id, include_hidden=True), [])

    def test_same_input_twice_changes_nothing_but_last_seen(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1")], now=T0)
        outcome = self.store.save_results(self.watch.id, [_item("L1")], now=T0 + timedelta(hours=1))
        self.assertEqual(outcome.new_items, ())
        rows = self.store.get_results(self.watch.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].first_seen, T0)
        self.assertEqual(rows[0].last_seen, T0 + timedelta(hours=1))
        self.assertTrue(rows[0].is_new)

    def test_reappearing_row_is_revealed(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1")], now=T0)
        self.store.save_results(self.watch.id, [], now=T0 + timedelta(hours=1))
        outcome = self.store.save_results(self.watch.id, [_item("L1")], now=T0 + timedelta(hours=2))
        self.assertEqual(outcome.new_items, ())
        rows = self.store.get_results(self.watch.id)
        self.assertEqual(len(rows), 1)
        self.assertFalse(rows[0].hidden)
        self.assertEqual(rows[0].first_seen, T0)

    def test_placeholder_rows_survive(self) -> None:
        placeholder = _item("P1", title="Search Suruga-ya for セイバー", source="Suruga-ya")
        self.store.save_results(self.watch.id, [placeholder], now=T0 - timedelta(days=60))
        self.store.save_results(self.watch.id, [], now=T0)
        rows = self.store.get_results(self.watch.id)
        self.assertEqual([row.link for row in rows], ["P1"])

    def test_new_rows_listed_first(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1")], now=T0)
        self.store.clear_new_flags(self.watch.id)
        self.store.save_results(self.watch.id, [_item("L1"), _item("L2")], now=T0 + timedelta(hours=1))
        rows = self.store.get_results(self.watch.id)
        self.assertEqual([row.link for row in rows], ["L2", "L1"])
        self.assertEqual([row.is_new for row in rows], [True, False])

    def test_clear_new_flags_resets_meta(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1"), _item("L2")], now=T0)
        self.assertEqual(self.store.get_new_counts(), {self.watch.id: 2})
        self.assertEqual(self.store.clear_new_flags(self.watch.id), 2)
        self.assertEqual(self.store.get_new_counts(), {})
        self.assertEqual(self.store.get_meta(self.watch.id).new_count, 0)

    def test_mark_all_seen(self) -> None:
        other = self.watches.add("Lancer", ["ランサー"])
        self.store.save_results(self.watch.id, [_item("L1")], now=T0)
        self.store.save_results(other.id, [_item("L2")], now=T0)
        self.assertEqual(self.store.mark_all_seen(), 2)
        self.assertEqual(self.store.get_new_counts(), {})

    def test_cleanup_expired(self) -> None:
        stale = self.watches.add("Lancer", ["ランサー"])
        self.store.save_results(stale.id, [_item("old")], now=T0 - timedelta(days=10))
        self.store.save_results(self.watch.id, [_item("fresh")], now=T0)
        removed = self.store.cleanup_expired(3, now=T0)
        self.assertEqual(removed, 1)
        self.assertEqual(self.store.get_results(stale.id, include_hidden=True), [])
        self.assertEqual(self.store.get_meta(stale.id).new_count, 0)
        rows = self.store.get_results(self.watch.id, include_hidden=True)
        self.assertEqual([row.link for row in rows], ["fresh"])
        self.assertEqual(self.store.get_meta(self.watch.id).new_count, 1)

    def test_cleanup_keeps_hidden_rows_inside_family_grace(self) -> None:
        self.store.save_results(self.watch.id, [_item("S1", source="Suruga-ya")], now=T0)
        self.store.save_results(self.watch.id, [], now=T0 + timedelta(days=1))

        self.assertEqual(self.store.cleanup_expired(3, now=T0 + timedelta(days=4)), 0)
        rows = self.store.get_results(self.watch.id, include_hidden=True)
        self.assertEqual([(row.link, row.hidden) for row in rows], [("S1", True)])

        self.assertEqual(self.store.cleanup_expired(3, now=T0 + timedelta(days=15)), 1)
        self.assertEqual(self.store.get_results(self.watch.id, include_hidden=True), [])

    def test_cleanup_keeps_untimed_rows_present_in_latest_pass(self) -> None:
        self.store.save_results(self.watch.id, [_item("F1", source="Fril")], now=T0)
        self.store.save_results(self.watch.id, [_item("F1", source="Fril")], now=T0 + timedelta(days=4))

        self.assertEqual(self.store.cleanup_expired(3, now=T0 + timedelta(days=4)), 0)
        outcome = self.store.save_results(
            self.watch.id,
            [_item("F1", source="Fril")],
            now=T0 + timedelta(days=4, hours=1),
        )
        self.assertEqual(outcome.new_items, ())

    def test_cleanup_removes_untimed_rows_of_idle_watch(self) -> None:
        self.store.save_results(self.watch.id, [_item("F1", source="Fril")], now=T0)
        self.assertEqual(self.store.cleanup_expired(3, now=T0 + timedelta(days=4)), 1)

    def test_naive_now_is_taken_as_utc(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1", source="Yahoo")], now=T0)
        outcome = self.store.save_results(self.watch.id, [], now=datetime(2026, 10, 1, 13, 0))
        self.assertEqual(outcome.hidden_count, 1)
        self.assertEqual(self.store.cleanup_expired(3, now=datetime(2026, 10, 2, 0, 0)), 0)

    def test_unknown_watch_raises_storage_error(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            self.store.save_results("missing", [_item("L1")], now=T0)
        self.assertEqual(ctx.exception.watch_id, "missing")

    def test_removing_watch_cascades(self) -> None:
        self.store.save_results(self.watch.id, [_item("L1")], now=T0)
        self.assertTrue(self.watches.remove(self.watch.id))
        self.assertEqual(self.store.get_results(self.watch.id, include_hidden=True), [])
        self.assertIsNone(self.store.get_meta(self.watch.id))


if __name__ == "__main__":
    unittest.main()
