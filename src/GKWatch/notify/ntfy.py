"""ntfy push notifications over HTTP."""

from __future__ import annotations

from typing import Sequence

import requests

from GKWatch.core.errors import NotificationError
from GKWatch.notify.base import Notifier, resolve_priority
from GKWatch.utils.log import log

DEFAULT_SERVER = "https://ntfy.sh"
DEFAULT_TIMEOUT = 10.0


class NtfyNotifier(Notifier):
    """Publish messages to an ntfy topic.

    Uses the JSON publishing endpoint (POST to the server root) so titles and
    messages may contain any Unicode text.
    """

    def __init__(
        self,
        topic: str,
        *,
        server: str = DEFAULT_SERVER,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if not topic:
            raise ValueError("ntfy topic must not be empty")
        self.topic = topic
        self.server = (server or DEFAULT_SERVER).rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, title: str, message: str, *, priority: int | str = "default", tags: Sequence[str] = ()) -> bool:
        level = resolve_priority(priority)
        payload = {
            "topic": self.topic,
            "title": title,
            "message": message,
            "priority": level,
            "tags": list(tags),
        }
        log.info("Sending ntfy notification: topic=%s title=%s priority=%d", self.topic, title, level)
        try:
            resp = self._session.post(self.server, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as error:
            raise NotificationError(f"ntfy publish failed: {error}") from error
        return True

    def close(self) -> None:
        self._session.close()
