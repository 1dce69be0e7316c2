"""Ordered fallback strategies inside one source adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from GKWatch.core.models import SourceResult
from GKWatch.sources.base import as_source_result
from GKWatch.utils.log import log

Strategy = Callable[[str], Any]


@dataclass(slots=True)
class FallbackSource:
    """Try each strategy in order until one produces a usable result.

    Every strategy follows the ``(term) -> items | None`` contract. ``None``,
    an error-shaped return, or a raised exception moves on to the next
    strategy; an empty list is a valid answer and stops the chain.

    Attributes:
        name: Source name reported on items and failures.
        strategies: ``(label, strategy)`` pairs in priority order.
    """

    name: str
    strategies: Sequence[tuple[str, Strategy]]

    def search(self, term: str, *, strict: bool = True, filters: Sequence[str] = ()) -> SourceResult:
        del strict, filters
        reasons: list[str] = []
        for label, strategy in self.strategies:
            try:
                raw = strategy(term)
            except Exception as error:  # noqa: BLE001 - strategy failure falls through to the next one
                log.warning("Source strategy failed: source=%s strategy=%s error=%s", self.name, label, error)
                reasons.append(f"{label}: {error}")
                continue

            result = as_source_result(self.name, raw)
            if result.is_ok:
                log.debug(
                    "Source strategy succeeded: source=%s strategy=%s count=%d",
                    self.name,
                    label,
                    len(result.items),
                )
                return result
            log.debug("Source strategy gave no result: source=%s strategy=%s reason=%s", self.name, label, result.error)
            reasons.append(f"{label}: {result.error}")

        if not reasons:
            return SourceResult.err(self.name, "no strategies configured")
        return SourceResult.err(self.name, "all strategies failed (" + "; ".join(reasons) + ")")

    def close(self) -> None:
        for _, strategy in self.strategies:
            close_func = getattr(strategy, "close", None)
            if callable(close_func):
                close_func()
