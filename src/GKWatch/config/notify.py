"""Notification domain configuration (ntfy)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_bool,
    expect_float,
    expect_str,
    get_optional_value,
    get_required_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class NtfyConfig:
    """ntfy channel settings.

    Attributes:
        enabled: Whether priority alerts are published.
        server: ntfy server URL.
        topic: Topic name; may be left empty and read from ``topic_env``.
        topic_env: Environment variable holding the topic.
        timeout: HTTP timeout in seconds.
    """

    enabled: bool
    server: str
    topic: str
    topic_env: str
    timeout: float


@dataclass(frozen=True, slots=True)
class NotifyConfig:
    ntfy: NtfyConfig


def load_notify(raw: Mapping[str, Any]) -> NotifyConfig:
    section = get_section(raw, "notify", required=True)
    ntfy = get_section(section, "ntfy", required=True)
    return NotifyConfig(
        ntfy=NtfyConfig(
            enabled=expect_bool(get_required_value(ntfy, "enabled", "notify.ntfy.enabled"), "notify.ntfy.enabled"),
            server=expect_str(get_required_value(ntfy, "server", "notify.ntfy.server"), "notify.ntfy.server"),
            topic=expect_str(get_optional_value(ntfy, "topic", "") or "", "notify.ntfy.topic"),
            topic_env=expect_str(get_optional_value(ntfy, "topic_env", "") or "", "notify.ntfy.topic_env"),
            timeout=expect_float(get_required_value(ntfy, "timeout", "notify.ntfy.timeout"), "notify.ntfy.timeout"),
        )
    )


def check_notify(config: NotifyConfig) -> None:
    ntfy = config.ntfy
    if ntfy.enabled and not ntfy.server.strip():
        raise ValueError("notify.ntfy.server must not be empty when notify.ntfy.enabled=true")
    if ntfy.enabled and not (ntfy.topic.strip() or ntfy.topic_env.strip()):
        raise ValueError("notify.ntfy.enabled=true requires notify.ntfy.topic or notify.ntfy.topic_env")
    if ntfy.timeout <= 0:
        raise ValueError("notify.ntfy.timeout must be positive")
