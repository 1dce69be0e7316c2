"""Service layer for GKWatch.

Provides the multi-source search aggregator, adapter health tracking, the
batch orchestrator, and factory functions wiring them from configuration.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from GKWatch.services.batch import BatchProgress, BatchReport, BatchRunner
from GKWatch.services.health import AdapterHealth
from GKWatch.services.search import ListingSearchService, ListingSource
from GKWatch.sources.registry import build_sources

if TYPE_CHECKING:
    from GKWatch.config import AppConfig
    from GKWatch.notify import Notifier
    from GKWatch.storage import Storage


def create_search_service(config: AppConfig) -> ListingSearchService:
    """Create a search service with configured sources.

    Args:
        config: Application configuration containing source settings.

    Returns:
        Configured ListingSearchService instance.

    Raises:
        SourceConfigError: If an adapter cannot be loaded.
    """
    search = config.search
    return ListingSearchService(
        sources=build_sources(search.sources),
        health=AdapterHealth(max_consecutive_timeouts=search.max_consecutive_timeouts),
        default_enabled=search.enabled_map,
        default_strict=search.strict_map,
        timeout=search.timeout,
        max_workers=search.max_workers,
        policy=config.matching.to_policy(),
    )


def create_batch_runner(
    config: AppConfig,
    *,
    search_service: ListingSearchService,
    storage: Storage,
    notifier: Notifier,
) -> BatchRunner:
    """Create a batch runner over the given services and stores."""
    return BatchRunner(
        search_service=search_service,
        watches=storage.watches,
        results=storage.results,
        blacklist=storage.blacklist,
        blocked=storage.blocked,
        state_store=storage.batch_state,
        notifier=notifier,
        concurrency=config.batch.concurrency,
        stagger_seconds=config.batch.stagger_seconds,
        resume_max_age=timedelta(hours=config.batch.resume_max_age_hours),
    )


__all__ = [
    "AdapterHealth",
    "BatchProgress",
    "BatchReport",
    "BatchRunner",
    "ListingSearchService",
    "ListingSource",
    "create_batch_runner",
    "create_search_service",
]
