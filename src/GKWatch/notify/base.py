"""Base classes for notifiers.

Notifiers deliver priority alerts for watches with new listings. Delivery
itself is out of the core's hands; the batch runner only hands over the new
items and logs failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from GKWatch.core.models import Item

PRIORITY_LEVELS: dict[str, int] = {
    "max": 5,
    "urgent": 5,
    "high": 4,
    "default": 3,
    "low": 2,
    "min": 1,
}

ALERT_PREVIEW_ITEMS = 3


def resolve_priority(priority: int | str) -> int:
    """Map a priority name or number to the 1-5 scale (unknown names give 3)."""
    if isinstance(priority, int):
        return min(5, max(1, priority))
    text = str(priority).strip().lower()
    if text in PRIORITY_LEVELS:
        return PRIORITY_LEVELS[text]
    try:
        return min(5, max(1, int(text)))
    except ValueError:
        return PRIORITY_LEVELS["default"]


def format_priority_alert(watch_name: str, items: Sequence[Item]) -> tuple[str, str]:
    """Build ``(title, message)`` for a priority alert."""
    count = len(items)
    title = f"PRIORITY MATCH: {watch_name}"
    lines = [f'Found {count} new item(s) for "{watch_name}"!']
    for item in items[:ALERT_PREVIEW_ITEMS]:
        lines.append(f"• {item.title} ({item.price})" if item.price else f"• {item.title}")
    if count > ALERT_PREVIEW_ITEMS:
        lines.append(f"...and {count - ALERT_PREVIEW_ITEMS} more")
    return title, "\n".join(lines)


class Notifier(ABC):
    """Abstract base class for notification channels."""

    @abstractmethod
    def send(self, title: str, message: str, *, priority: int | str = "default", tags: Sequence[str] = ()) -> bool:
        """Deliver one notification.

        Returns:
            False when the channel is disabled and nothing was sent.

        Raises:
            NotificationError: If delivery was attempted and failed.
        """

    def send_priority_alert(self, watch_name: str, items: Sequence[Item]) -> bool:
        """Send a max-priority alert listing the first few new items."""
        if not items:
            return False
        title, message = format_priority_alert(watch_name, items)
        return self.send(title, message, priority="max", tags=("rotating_light", "warning"))

    def close(self) -> None:
        """Release resources held by the notifier."""


class NullNotifier(Notifier):
    """Notifier used when no channel is configured."""

    def send(self, title: str, message: str, *, priority: int | str = "default", tags: Sequence[str] = ()) -> bool:
        return False
