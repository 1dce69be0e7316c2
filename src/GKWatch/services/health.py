"""Adapter health tracking.

A source that keeps timing out slows every search of a batch run. The health
object counts consecutive timeouts per source and disables the source for
the rest of the run once a threshold is reached. Batch runs call ``reset()``
at start, so a disabled source is retried on the next run.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(slots=True)
class SourceHealthState:
    """Counters for a single source."""

    consecutive_timeouts: int = 0
    failures: int = 0
    successes: int = 0
    disabled_reason: str | None = None


@dataclass(slots=True)
class AdapterHealth:
    """Thread-safe per-source health registry.

    Attributes:
        max_consecutive_timeouts: Timeouts in a row before a source is
            disabled. Zero or less turns disabling off.
    """

    max_consecutive_timeouts: int = 3
    _states: dict[str, SourceHealthState] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _state(self, source: str) -> SourceHealthState:
        state = self._states.get(source)
        if state is None:
            state = SourceHealthState()
            self._states[source] = state
        return state

    def record_success(self, source: str) -> None:
        with self._lock:
            state = self._state(source)
            state.successes += 1
            state.consecutive_timeouts = 0

    def record_failure(self, source: str) -> None:
        """Record a non-timeout failure; it does not count toward disabling."""
        with self._lock:
            self._state(source).failures += 1

    def record_timeout(self, source: str) -> bool:
        """Record a timeout.

        Returns:
            True when this timeout disabled the source.
        """
        with self._lock:
            state = self._state(source)
            state.failures += 1
            state.consecutive_timeouts += 1
            if (
                self.max_consecutive_timeouts > 0
                and state.disabled_reason is None
                and state.consecutive_timeouts >= self.max_consecutive_timeouts
            ):
                state.disabled_reason = f"{state.consecutive_timeouts} consecutive timeouts"
                return True
            return False

    def is_disabled(self, source: str) -> bool:
        with self._lock:
            state = self._states.get(source)
            return state is not None and state.disabled_reason is not None

    def disabled_reason(self, source: str) -> str | None:
        with self._lock:
            state = self._states.get(source)
            return state.disabled_reason if state is not None else None

    def disabled_sources(self) -> dict[str, str]:
        with self._lock:
            return {
                name: state.disabled_reason
                for name, state in self._states.items()
                if state.disabled_reason is not None
            }

    def reset(self) -> None:
        """Forget all counters and re-enable every source."""
        with self._lock:
            self._states.clear()
