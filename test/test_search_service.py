"""Tests for multi-source search aggregation."""

import sys
import threading
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GKWatch.core.models import Item
from GKWatch.services.health import AdapterHealth
from GKWatch.services.search import ListingSearchService


class _FakeSource:
    def __init__(self, name: str, payload=None, *, error: Exception | None = None) -> None:
        self.name = name
        self.payload = payload
        self.error = error
        self.calls: list[tuple[str, bool, list[str]]] = []
        self.closed = False

    def search(self, term, *, strict, filters):
        self.calls.append((term, strict, list(filters)))
        if self.error is not None:
            raise self.error
        return self.payload

    def close(self) -> None:
        self.closed = True


class _BlockingSource:
    def __init__(self, name: str, release: threading.Event) -> None:
        self.name = name
        self.release = release

    def search(self, term, *, strict, filters):
        self.release.wait(5)
        return []


def _items(source: str, *titles: str) -> list[Item]:
    return [Item(title=title, link=f"https://{source.lower()}/{i}", source=source) for i, title in enumerate(titles)]


class TestListingSearchService(unittest.TestCase):
    def test_error_sentinel_is_reported_apart_from_items(self) -> None:
        taobao = _FakeSource("Taobao", {"error": "Cookie Error", "source": "Taobao"})
        mercari = _FakeSource("Mercari", _items("Mercari", "セイバー A", "セイバー B"))
        service = ListingSearchService(sources=(taobao, mercari))

        batch = service.search_all("セイバー")

        self.assertEqual([item.title for item in batch.items], ["セイバー A", "セイバー B"])
        self.assertEqual(len(batch.failures), 1)
        self.assertEqual(batch.failures[0].source, "Taobao")
        self.assertEqual(batch.failures[0].reason, "Cookie Error")

    def test_exceptions_and_none_become_failures(self) -> None:
        broken = _FakeSource("Broken", error=RuntimeError("boom"))
        empty = _FakeSource("Empty", None)
        good = _FakeSource("Good", _items("Good", "セイバー"))
        batch = ListingSearchService(sources=(broken, empty, good)).search_all("セイバー")
        self.assertEqual(len(batch.items), 1)
        reasons = {failure.source: failure.reason for failure in batch.failures}
        self.assertEqual(reasons["Broken"], "boom")
        self.assertEqual(reasons["Empty"], "source returned no data")

    def test_partial_list_keeps_valid_items(self) -> None:
        mixed = _FakeSource(
            "Mixed",
            [{"title": "セイバー", "url": "https://mixed/1"}, {"error": "captcha"}],
        )
        batch = ListingSearchService(sources=(mixed,)).search_all("セイバー")
        self.assertEqual([item.link for item in batch.items], ["https://mixed/1"])
        self.assertEqual(batch.items[0].source, "Mixed")
        self.assertEqual(batch.failures[0].reason, "captcha")

    def test_strict_query_filter_applies(self) -> None:
        source = _FakeSource("Mercari", _items("Mercari", "セイバー ガレキ", "ランサー ガレキ"))
        batch = ListingSearchService(sources=(source,)).search_all("セイバー")
        self.assertEqual([item.title for item in batch.items], ["セイバー ガレキ"])

    def test_loose_mode_trusts_source(self) -> None:
        source = _FakeSource("Mercari", _items("Mercari", "セイバー ガレキ", "ランサー ガレキ"))
        batch = ListingSearchService(sources=(source,)).search_all("セイバー", strict=False)
        self.assertEqual(len(batch.items), 2)
        self.assertEqual(source.calls[0][1], False)

    def test_strict_is_and_of_global_and_watch(self) -> None:
        source = _FakeSource("Yahoo", _items("Yahoo", "ランサー"))
        service = ListingSearchService(sources=(source,), default_strict={"Yahoo": False})
        batch = service.search_all("セイバー", strict=True)
        self.assertEqual(len(batch.items), 1)
        self.assertFalse(source.calls[0][1])

        source.calls.clear()
        service = ListingSearchService(sources=(source,))
        batch = service.search_all("セイバー", strict={"Yahoo": False})
        self.assertEqual(len(batch.items), 1)
        self.assertFalse(source.calls[0][1])

    def test_quoted_term_enforced_even_when_loose(self) -> None:
        source = _FakeSource("Mercari", _items("Mercari", "Saber resin", "Lancer resin"))
        batch = ListingSearchService(sources=(source,)).search_all('"Saber"', strict=False)
        self.assertEqual([item.title for item in batch.items], ["Saber resin"])

    def test_quoted_term_folds_small_kana(self) -> None:
        source = _FakeSource("Mercari", _items("Mercari", "ガアルル ガレキ", "ランサー ガレキ"))
        batch = ListingSearchService(sources=(source,)).search_all('"ガァルル"', strict=False)
        self.assertEqual([item.title for item in batch.items], ["ガアルル ガレキ"])

    def test_negative_filters_are_passed_and_applied(self) -> None:
        source = _FakeSource("Mercari", _items("Mercari", "セイバー 新品", "セイバー 中古"))
        batch = ListingSearchService(sources=(source,)).search_all("セイバー", negative_filters=["中古", " "])
        self.assertEqual([item.title for item in batch.items], ["セイバー 新品"])
        self.assertEqual(source.calls[0][2], ["中古"])

    def test_items_without_link_are_dropped(self) -> None:
        source = _FakeSource("Mercari", [Item(title="セイバー", link="", source="Mercari")])
        batch = ListingSearchService(sources=(source,)).search_all("セイバー")
        self.assertEqual(batch.items, [])
        self.assertEqual(batch.failures, [])

    def test_enabled_map_falls_back_to_defaults(self) -> None:
        a = _FakeSource("A", [])
        b = _FakeSource("B", [])
        c = _FakeSource("C", [])
        service = ListingSearchService(sources=(a, b, c), default_enabled={"B": False, "C": False})
        service.search_all("x", enabled_sources={"A": False, "C": True})
        self.assertEqual(len(a.calls), 0)
        self.assertEqual(len(b.calls), 0)
        self.assertEqual(len(c.calls), 1)

    def test_no_enabled_sources_returns_empty_batch(self) -> None:
        a = _FakeSource("A", [])
        batch = ListingSearchService(sources=(a,)).search_all("x", enabled_sources={"A": False})
        self.assertEqual(batch.items, [])
        self.assertEqual(batch.failures, [])

    def test_timeout_reports_failure_and_disables_source(self) -> None:
        release = threading.Event()
        self.addCleanup(release.set)
        slow = _BlockingSource("Slow", release)
        fast = _FakeSource("Fast", _items("Fast", "x"))
        health = AdapterHealth(max_consecutive_timeouts=1)
        service = ListingSearchService(sources=(slow, fast), health=health, timeout=0.2)

        batch = service.search_all("x")
        self.assertEqual(len(batch.items), 1)
        self.assertEqual(batch.failures[0].source, "Slow")
        self.assertTrue(batch.failures[0].reason.startswith("timeout"))
        self.assertTrue(health.is_disabled("Slow"))

        batch = service.search_all("x")
        self.assertEqual(batch.failures[0].reason, "disabled: 1 consecutive timeouts")

        health.reset()
        self.assertFalse(health.is_disabled("Slow"))

    def test_close_isolates_failures(self) -> None:
        class _BadClose(_FakeSource):
            def close(self) -> None:
                raise RuntimeError("close failed")

        bad = _BadClose("Bad", [])
        good = _FakeSource("Good", [])
        ListingSearchService(sources=(bad, good)).close()
        self.assertTrue(good.closed)


class TestAdapterHealth(unittest.TestCase):
    def test_success_resets_consecutive_timeouts(self) -> None:
        health = AdapterHealth(max_consecutive_timeouts=2)
        self.assertFalse(health.record_timeout("s"))
        health.record_success("s")
        self.assertFalse(health.record_timeout("s"))
        self.assertTrue(health.record_timeout("s"))
        self.assertEqual(health.disabled_sources(), {"s": "2 consecutive timeouts"})

    def test_zero_threshold_never_disables(self) -> None:
        health = AdapterHealth(max_consecutive_timeouts=0)
        for _ in range(5):
            self.assertFalse(health.record_timeout("s"))
        self.assertFalse(health.is_disabled("s"))

    def test_plain_failures_do_not_disable(self) -> None:
        health = AdapterHealth(max_consecutive_timeouts=1)
        health.record_failure("s")
        self.assertIsNone(health.disabled_reason("s"))


if __name__ == "__main__":
    unittest.main()
