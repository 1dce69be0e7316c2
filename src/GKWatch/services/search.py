"""Search service layer for multi-source listing aggregation."""

from __future__ import annotations

import re
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

import requests

from GKWatch.core.models import Item, SearchBatch, SourceFailure, SourceResult
from GKWatch.core.query import DEFAULT_POLICY, MatchPolicy, has_quoted_terms, matches, parse
from GKWatch.services.health import AdapterHealth
from GKWatch.sources.base import as_source_result
from GKWatch.utils.log import log

_QUOTED_RE = re.compile(r'"([^"]+)"')

StrictInput = bool | Mapping[str, bool]


class ListingSource(Protocol):
    """Protocol for an external marketplace adapter."""

    name: str

    def search(
        self,
        term: str,
        *,
        strict: bool,
        filters: Sequence[str],
    ) -> SourceResult | Sequence[Any] | None:
        """Search listings for one term."""
        raise NotImplementedError

    def close(self) -> None:
        """Close resources held by source."""
        raise NotImplementedError


@dataclass(slots=True)
class ListingSearchService:
    """Fan a search term out to enabled sources and merge the results.

    Attributes:
        sources: Sources in merge order.
        health: Shared health registry; disabled sources are skipped.
        default_enabled: Global per-source enable map; missing names are enabled.
        default_strict: Global per-source strictness; missing names are strict.
        timeout: Seconds to wait for all sources of one term, or None.
        max_workers: Upper bound for concurrent source calls.
        policy: Query normalization tables.
    """

    sources: tuple[ListingSource, ...]
    health: AdapterHealth = field(default_factory=AdapterHealth)
    default_enabled: Mapping[str, bool] = field(default_factory=dict)
    default_strict: Mapping[str, bool] = field(default_factory=dict)
    timeout: float | None = 60.0
    max_workers: int = 8
    policy: MatchPolicy = DEFAULT_POLICY

    def search_all(
        self,
        term: str,
        enabled_sources: Mapping[str, bool] | None = None,
        strict: StrictInput = True,
        negative_filters: Sequence[str] = (),
    ) -> SearchBatch:
        """Search one term across every enabled source.

        Never raises because of a source: exceptions, ``None`` returns,
        error-shaped returns and timeouts become ``SearchBatch.failures``.
        Every quoted substring of ``term`` must appear in a kept title; both
        sides are normalized with ``policy`` like the query engine does.

        Args:
            term: Raw query text as typed by the user.
            enabled_sources: Per-watch enable map; names it omits fall back
                to ``default_enabled``.
            strict: Per-watch strictness, either one flag or a per-source map.
                It is AND-combined with ``default_strict``.
            negative_filters: Title substrings that exclude an item.

        Returns:
            SearchBatch: Items in source order plus per-source failures.
        """
        batch = SearchBatch()
        quoted_terms = [self.policy.normalize(q.strip()) for q in _QUOTED_RE.findall(term or "") if q.strip()]
        node = parse(term)
        query_is_quoted = has_quoted_terms(node)
        filters = [f for f in negative_filters if f and f.strip()]

        planned: list[tuple[ListingSource, bool]] = []
        for source in self.sources:
            name = _source_name(source)
            if not self._is_enabled(name, enabled_sources):
                continue
            reason = self.health.disabled_reason(name)
            if reason is not None:
                log.warning("Search source skipped: source=%s reason=%s", name, reason)
                batch.failures.append(SourceFailure(source=name, reason=f"disabled: {reason}"))
                continue
            planned.append((source, self._effective_strict(name, strict)))

        if not planned:
            log.warning("No enabled search sources for term=%r", term)
            return batch

        results = self._run_sources(term, planned, filters)

        for source, source_strict in planned:
            name = _source_name(source)
            result = results[name]
            if result.failure is not None:
                batch.failures.append(result.failure)
            items = [item for item in result.items if item.link]
            if source_strict or query_is_quoted:
                items = [item for item in items if matches(item.title, node, source_strict, self.policy)]
            batch.items.extend(items)

        if filters:
            batch.items = _exclude_filtered(batch.items, filters)
        if quoted_terms:
            batch.items = [
                item
                for item in batch.items
                if all(q in self.policy.normalize(item.title or "") for q in quoted_terms)
            ]
        return batch

    def close(self) -> None:
        """Close all sources and release external resources."""
        failed_sources: list[str] = []
        for source in self.sources:
            close_func = getattr(source, "close", None)
            if callable(close_func):
                source_name = _source_name(source)
                try:
                    close_func()
                except Exception as error:  # noqa: BLE001 - close failure must be isolated
                    failed_sources.append(source_name)
                    log.warning("Search source close failed: source=%s error=%s", source_name, error)
        if failed_sources:
            log.warning("Search service close completed with failures: %s", ", ".join(failed_sources))

    def _is_enabled(self, name: str, enabled_sources: Mapping[str, bool] | None) -> bool:
        if enabled_sources is not None and name in enabled_sources:
            return bool(enabled_sources[name])
        return bool(self.default_enabled.get(name, True))

    def _effective_strict(self, name: str, strict: StrictInput) -> bool:
        if isinstance(strict, Mapping):
            override = bool(strict.get(name, True))
        else:
            override = bool(strict)
        return bool(self.default_strict.get(name, True)) and override

    def _run_sources(
        self,
        term: str,
        planned: Sequence[tuple[ListingSource, bool]],
        filters: Sequence[str],
    ) -> dict[str, SourceResult]:
        """Call every planned source concurrently and collect all outcomes."""
        results: dict[str, SourceResult] = {}
        executor = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(planned))))
        try:
            future_to_name: dict[Future, str] = {
                executor.submit(_call_source, source, term, source_strict, filters): _source_name(source)
                for source, source_strict in planned
            }
            done, not_done = wait(future_to_name, timeout=self.timeout)

            for future in done:
                name = future_to_name[future]
                try:
                    result = future.result()
                except Exception as error:  # noqa: BLE001 - source failure must be isolated
                    results[name] = self._record_error(name, error)
                    continue
                if result.is_ok:
                    self.health.record_success(name)
                    log.info("Search source completed: source=%s count=%d", name, len(result.items))
                else:
                    self.health.record_failure(name)
                    log.warning("Search source failed: source=%s error=%s", name, result.error)
                results[name] = result

            for future in not_done:
                name = future_to_name[future]
                future.cancel()
                results[name] = self._record_error(name, FutureTimeoutError(f"timed out after {self.timeout}s"))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def _record_error(self, name: str, error: BaseException) -> SourceResult:
        if _is_timeout(error):
            reason = f"timeout: {error}" if str(error) else "timeout"
            log.warning("Search source timed out: source=%s error=%s", name, error)
            if self.health.record_timeout(name):
                log.warning(
                    "Search source disabled for this run: source=%s reason=%s",
                    name,
                    self.health.disabled_reason(name),
                )
        else:
            reason = str(error) or type(error).__name__
            self.health.record_failure(name)
            log.warning("Search source failed: source=%s error=%s", name, reason)
        return SourceResult.err(name, reason)


def _call_source(source: ListingSource, term: str, strict: bool, filters: Sequence[str]) -> SourceResult:
    name = _source_name(source)
    raw = source.search(term, strict=strict, filters=list(filters))
    return as_source_result(name, raw)


def _source_name(source: ListingSource) -> str:
    return getattr(source, "name", "unknown")


def _is_timeout(error: BaseException) -> bool:
    return isinstance(error, (TimeoutError, FutureTimeoutError, requests.exceptions.Timeout))


def _exclude_filtered(items: Sequence[Item], filters: Sequence[str]) -> list[Item]:
    """Drop items whose title contains any negative filter (case-insensitive)."""
    lowered = [f.strip().lower() for f in filters]
    return [item for item in items if not any(f in (item.title or "").lower() for f in lowered)]
