"""Notification channels for GKWatch.

Exports the Notifier base class and a factory building the configured
channel.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from GKWatch.notify.base import Notifier, NullNotifier, format_priority_alert, resolve_priority
from GKWatch.notify.ntfy import NtfyNotifier
from GKWatch.utils.log import log

if TYPE_CHECKING:
    from GKWatch.config import AppConfig


def create_notifier(config: AppConfig) -> Notifier:
    """Create the notifier described by ``config.notify``.

    The ntfy topic falls back to the environment variable named by
    ``notify.ntfy.topic_env`` when the config leaves it empty.

    Args:
        config: Application configuration.

    Returns:
        NtfyNotifier when enabled with a topic, otherwise NullNotifier.
    """
    ntfy = config.notify.ntfy
    if not ntfy.enabled:
        return NullNotifier()
    topic = ntfy.topic or (os.getenv(ntfy.topic_env, "") if ntfy.topic_env else "")
    if not topic:
        log.warning("ntfy is enabled but no topic is configured; notifications are skipped")
        return NullNotifier()
    return NtfyNotifier(topic, server=ntfy.server, timeout=ntfy.timeout)


__all__ = [
    "Notifier",
    "NullNotifier",
    "NtfyNotifier",
    "create_notifier",
    "format_priority_alert",
    "resolve_priority",
]
