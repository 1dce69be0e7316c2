"""Exception hierarchy for GKWatch."""

from __future__ import annotations


class GKWatchError(Exception):
    """Base class for all GKWatch errors."""


class StorageError(GKWatchError):
    """A persistence operation failed and its transaction was rolled back.

    Attributes:
        watch_id: Watch whose persisted state was being written, if any.
    """

    def __init__(self, message: str, *, watch_id: str | None = None) -> None:
        super().__init__(message)
        self.watch_id = watch_id


class SourceConfigError(GKWatchError):
    """A configured source adapter could not be loaded or built."""


class NotificationError(GKWatchError):
    """A notification could not be delivered."""
