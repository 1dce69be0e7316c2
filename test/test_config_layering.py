"""Tests for layered config parsing and validation."""

import sys
import unittest
from copy import deepcopy
from datetime import timedelta
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GKWatch.config import parse_config_dict


def _base_raw_config() -> dict:
    return {
        "log": {"level": "info", "to_file": False, "dir": "log"},
        "storage": {"db_path": "data/gkwatch.db"},
        "cleanup": {"results_max_age_days": 3},
        "search": {
            "sources": {
                "Mercari": {
                    "adapter": "http_json",
                    "options": {"endpoint": "http://localhost:8080/mercari"},
                },
                "Yahoo Auctions": {"adapter": "http_json", "strict": False, "enabled": False},
            },
            "timeout": 60,
            "max_workers": 8,
            "max_consecutive_timeouts": 3,
        },
        "grace": {
            "families": {
                "auction": {"days": 3, "match": ["Yahoo"]},
                "flea_market": {"days": 2, "match": ["mercari"]},
            },
            "placeholder_prefixes": ["Search Suruga-ya for"],
        },
        "matching": {
            "synonym_classes": [["ガレージキット", "ガレキ"]],
            "kana_pairs": {"ッ": "ツ"},
        },
        "batch": {"concurrency": 3, "stagger_seconds": 1.0, "resume_max_age_hours": 24},
        "notify": {
            "ntfy": {
                "enabled": False,
                "server": "https://ntfy.sh",
                "topic": "",
                "topic_env": "GKWATCH_NTFY_TOPIC",
                "timeout": 10,
            }
        },
    }


class TestConfigLayering(unittest.TestCase):
    def test_parse_success_nested_access(self) -> None:
        cfg = parse_config_dict(_base_raw_config())
        self.assertEqual(cfg.runtime.level, "INFO")
        self.assertEqual(cfg.storage.db_path, "data/gkwatch.db")
        self.assertEqual(list(cfg.search.sources), ["Mercari", "Yahoo Auctions"])
        self.assertEqual(cfg.search.sources["Mercari"].options["endpoint"], "http://localhost:8080/mercari")
        self.assertEqual(cfg.search.enabled_map, {"Mercari": True, "Yahoo Auctions": False})
        self.assertEqual(cfg.search.strict_map, {"Mercari": True, "Yahoo Auctions": False})
        self.assertEqual(cfg.search.timeout, 60.0)

    def test_grace_config_builds_policy(self) -> None:
        policy = parse_config_dict(_base_raw_config()).grace.to_policy()
        self.assertEqual(policy.family_for("Yahoo Auctions").grace, timedelta(days=3))
        self.assertEqual([family.name for family in policy.families], ["auction", "flea_market"])
        self.assertTrue(policy.is_placeholder("Search Suruga-ya for x"))

    def test_matching_config_builds_policy(self) -> None:
        policy = parse_config_dict(_base_raw_config()).matching.to_policy()
        self.assertEqual(policy.normalize("キッネ"), "キツネ")
        self.assertIsNotNone(policy.synonyms_for("ガレキ"))

    def test_unknown_log_level_rejected(self) -> None:
        raw = _base_raw_config()
        raw["log"]["level"] = "LOUD"
        with self.assertRaisesRegex(ValueError, "log\\.level"):
            parse_config_dict(raw)

    def test_search_timeout_type_error_contains_key(self) -> None:
        raw = _base_raw_config()
        raw["search"]["timeout"] = "60"
        with self.assertRaisesRegex(TypeError, "search\\.timeout"):
            parse_config_dict(raw)

    def test_source_without_adapter(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["search"]["sources"]["Broken"] = {"enabled": True}
        with self.assertRaisesRegex(ValueError, "search\\.sources\\.Broken\\.adapter"):
            parse_config_dict(raw)

    def test_negative_grace_days_rejected(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["grace"]["families"]["auction"]["days"] = -1
        with self.assertRaisesRegex(ValueError, "grace\\.families\\.auction\\.days"):
            parse_config_dict(raw)

    def test_kana_pairs_must_be_single_characters(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["matching"]["kana_pairs"] = {"ッッ": "ツ"}
        with self.assertRaisesRegex(ValueError, "matching\\.kana_pairs"):
            parse_config_dict(raw)

    def test_batch_concurrency_positive(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["batch"]["concurrency"] = 0
        with self.assertRaisesRegex(ValueError, "batch\\.concurrency"):
            parse_config_dict(raw)

    def test_ntfy_enabled_requires_topic_source(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["notify"]["ntfy"]["enabled"] = True
        raw["notify"]["ntfy"]["topic_env"] = ""
        with self.assertRaisesRegex(ValueError, "notify\\.ntfy"):
            parse_config_dict(raw)

    def test_missing_section(self) -> None:
        raw = deepcopy(_base_raw_config())
        del raw["batch"]
        with self.assertRaisesRegex(ValueError, "batch"):
            parse_config_dict(raw)

    def test_grace_longer_than_cleanup_age_is_reported(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["grace"]["families"]["shop_stock"] = {"days": 14, "match": ["suruga"]}
        with self.assertLogs("GKWatch", level="DEBUG") as logs:
            parse_config_dict(raw)
        self.assertTrue(any("grace.families.shop_stock" in line for line in logs.output))
        self.assertFalse(any("grace.families.auction" in line for line in logs.output))

    def test_unclassified_source_only_warns(self) -> None:
        raw = deepcopy(_base_raw_config())
        raw["search"]["sources"]["Some Shop"] = {"adapter": "http_json"}
        with self.assertLogs("GKWatch", level="WARNING") as logs:
            parse_config_dict(raw)
        self.assertTrue(any("Some Shop" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
