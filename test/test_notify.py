"""Tests for priority alerts and the ntfy channel."""

import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from GKWatch.config import load_config_with_defaults
from GKWatch.core.errors import NotificationError
from GKWatch.core.models import Item
from GKWatch.notify import NtfyNotifier, NullNotifier, create_notifier
from GKWatch.notify.base import format_priority_alert, resolve_priority


def _items(count: int) -> list[Item]:
    return [Item(title=f"kit {i}", link=f"l{i}", source="s", price="¥100" if i == 0 else "") for i in range(count)]


class TestPriorityAlertFormat(unittest.TestCase):
    def test_lists_first_three_items(self) -> None:
        title, message = format_priority_alert("Saber", _items(5))
        self.assertEqual(title, "PRIORITY MATCH: Saber")
        lines = message.splitlines()
        self.assertEqual(lines[0], 'Found 5 new item(s) for "Saber"!')
        self.assertEqual(lines[1], "• kit 0 (¥100)")
        self.assertEqual(lines[3], "• kit 2")
        self.assertEqual(lines[4], "...and 2 more")

    def test_no_more_line_for_short_lists(self) -> None:
        _, message = format_priority_alert("Saber", _items(2))
        self.assertNotIn("more", message)

    def test_resolve_priority(self) -> None:
        self.assertEqual(resolve_priority("max"), 5)
        self.assertEqual(resolve_priority("LOW"), 2)
        self.assertEqual(resolve_priority(9), 5)
        self.assertEqual(resolve_priority("4"), 4)
        self.assertEqual(resolve_priority("whatever"), 3)


class TestNtfyNotifier(unittest.TestCase):
    def test_send_posts_json(self) -> None:
        session = MagicMock()
        notifier = NtfyNotifier("gk-topic", server="https://ntfy.example/", session=session)

        self.assertTrue(notifier.send_priority_alert("Saber", _items(1)))

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "https://ntfy.example")
        payload = kwargs["json"]
        self.assertEqual(payload["topic"], "gk-topic")
        self.assertEqual(payload["priority"], 5)
        self.assertEqual(payload["tags"], ["rotating_light", "warning"])

    def test_http_error_becomes_notification_error(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("down")
        notifier = NtfyNotifier("t", session=session)
        with self.assertRaises(NotificationError):
            notifier.send("title", "message")

    def test_empty_items_send_nothing(self) -> None:
        session = MagicMock()
        self.assertFalse(NtfyNotifier("t", session=session).send_priority_alert("Saber", []))
        session.post.assert_not_called()


class TestCreateNotifier(unittest.TestCase):
    def _config(self, tmp_yaml: str):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "override.yml"
            path.write_text(tmp_yaml, encoding="utf-8")
            return load_config_with_defaults(path)

    def test_disabled_by_default(self) -> None:
        self.assertIsInstance(create_notifier(load_config_with_defaults()), NullNotifier)

    def test_topic_from_environment(self) -> None:
        cfg = self._config("notify:\n  ntfy:\n    enabled: true\n")
        with patch.dict(os.environ, {"GKWATCH_NTFY_TOPIC": "env-topic"}, clear=False):
            notifier = create_notifier(cfg)
        self.assertIsInstance(notifier, NtfyNotifier)
        self.assertEqual(notifier.topic, "env-topic")
        notifier.close()

    def test_missing_topic_falls_back_to_null(self) -> None:
        cfg = self._config("notify:\n  ntfy:\n    enabled: true\n")
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsInstance(create_notifier(cfg), NullNotifier)


if __name__ == "__main__":
    unittest.main()
