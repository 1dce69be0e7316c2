"""Batch orchestration over watches.

Runs every watch through search, filtering and reconciliation in bounded
concurrent chunks. Progress is checkpointed before each chunk so that an
interrupted run can be resumed; an abort request is honored between chunks.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Sequence

from GKWatch.core.errors import NotificationError
from GKWatch.core.models import Item, SaveOutcome, SourceFailure, Watch
from GKWatch.utils.log import log
from GKWatch.utils.timeutil import as_utc, utc_now

if TYPE_CHECKING:
    from GKWatch.notify import Notifier
    from GKWatch.services.search import ListingSearchService
    from GKWatch.storage.batch_state import BatchStateStore
    from GKWatch.storage.blocklist import BlacklistStore, BlockedItemStore
    from GKWatch.storage.results import SqliteResultStore
    from GKWatch.storage.watchlist import WatchStore


@dataclass(frozen=True, slots=True)
class BatchProgress:
    current: int
    total: int
    current_item: str


@dataclass(slots=True)
class BatchReport:
    """Summary of one batch run.

    Attributes:
        run_type: Trigger of the run.
        total: Watches in the run, including ones finished before a resume.
        processed: Ids of watches that were reconciled.
        failed: Watch id to error message for watches that failed.
        new_items: New items per watch, only for watches with ``notify`` set.
        source_failures: Adapter failures seen during the run.
        aborted: Whether the run stopped on an abort request.
        resumed: Whether the run continued a saved checkpoint.
    """

    run_type: str
    total: int
    processed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    new_items: dict[str, tuple[Item, ...]] = field(default_factory=dict)
    source_failures: list[SourceFailure] = field(default_factory=list)
    aborted: bool = False
    resumed: bool = False


@dataclass(frozen=True, slots=True)
class _WatchOutcome:
    saved: SaveOutcome
    failures: tuple[SourceFailure, ...]


class BatchRunner:
    """Run watches in chunks of ``concurrency`` with abort and resume support."""

    def __init__(
        self,
        *,
        search_service: ListingSearchService,
        watches: WatchStore,
        results: SqliteResultStore,
        blacklist: BlacklistStore,
        blocked: BlockedItemStore,
        state_store: BatchStateStore,
        notifier: Notifier,
        concurrency: int = 3,
        stagger_seconds: float = 1.0,
        resume_max_age: timedelta = timedelta(hours=24),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.search_service = search_service
        self.watches = watches
        self.results = results
        self.blacklist = blacklist
        self.blocked = blocked
        self.state_store = state_store
        self.notifier = notifier
        self.concurrency = max(1, int(concurrency))
        self.stagger_seconds = max(0.0, float(stagger_seconds))
        self.resume_max_age = resume_max_age
        self._sleep = sleep
        self._lock = threading.Lock()
        self._abort = threading.Event()
        self._running = False
        self._progress: BatchProgress | None = None
        self._started = 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def progress(self) -> BatchProgress | None:
        with self._lock:
            return self._progress

    def abort(self) -> bool:
        """Request the running batch to stop before its next chunk."""
        with self._lock:
            if not self._running:
                return False
        self._abort.set()
        log.info("Batch abort requested")
        return True

    def run(self, watches: Sequence[Watch] | None = None, *, run_type: str = "manual") -> BatchReport | None:
        """Run a fresh batch.

        Args:
            watches: Watches to process; defaults to every active watch.
            run_type: Trigger label stored with the checkpoint.

        Returns:
            BatchReport, or None when another batch is already running.
        """
        targets = list(watches) if watches is not None else self.watches.list(active_only=True)
        return self._run(targets, run_type=run_type, total=len(targets), started_at=utc_now(), resumed=False)

    def resume(self, *, now: datetime | None = None) -> BatchReport | None:
        """Continue a checkpointed batch.

        Stale checkpoints (older than ``resume_max_age``) and checkpoints
        whose watches no longer exist are discarded.

        Returns:
            BatchReport, or None when there was nothing to resume.
        """
        state = self.state_store.load()
        if state is None:
            return None
        now = as_utc(now) if now is not None else utc_now()
        if now - state.updated_at > self.resume_max_age:
            log.info("Resume state too old, discarding: updated_at=%s", state.updated_at.isoformat())
            self.state_store.clear()
            return None

        targets = [watch for watch in (self.watches.get(watch_id) for watch_id in state.remaining) if watch]
        if not targets:
            log.info("Resume state has no remaining watches, discarding")
            self.state_store.clear()
            return None

        log.info("Resuming %s batch: remaining=%d total=%d", state.run_type, len(targets), state.total)
        return self._run(
            targets,
            run_type=state.run_type,
            total=state.total,
            started_at=state.started_at,
            resumed=True,
        )

    def _run(
        self,
        targets: list[Watch],
        *,
        run_type: str,
        total: int,
        started_at: datetime,
        resumed: bool,
    ) -> BatchReport | None:
        with self._lock:
            if self._running:
                log.warning("Batch already running, skipping %s run", run_type)
                return None
            self._running = True
            self._abort.clear()
            self._started = total - len(targets)
            self._progress = BatchProgress(current=self._started, total=total, current_item="")

        report = BatchReport(run_type=run_type, total=total, resumed=resumed)
        log.info("Starting %s batch: watches=%d concurrency=%d", run_type, len(targets), self.concurrency)
        self.search_service.health.reset()

        try:
            for start in range(0, len(targets), self.concurrency):
                if self._abort.is_set():
                    log.info("Batch aborted: processed=%d remaining=%d", len(report.processed), len(targets) - start)
                    report.aborted = True
                    self.state_store.clear()
                    break
                self.state_store.save(
                    run_type,
                    [watch.id for watch in targets[start:]],
                    total=total,
                    started_at=started_at,
                )
                self._run_chunk(targets[start:start + self.concurrency], report)
            else:
                self.state_store.clear()
        finally:
            with self._lock:
                self._running = False
                self._progress = None
            self._abort.clear()

        log.info(
            "Batch finished: type=%s processed=%d failed=%d watches_with_new=%d aborted=%s",
            run_type,
            len(report.processed),
            len(report.failed),
            len(report.new_items),
            report.aborted,
        )
        return report

    def _run_chunk(self, chunk: Sequence[Watch], report: BatchReport) -> None:
        with ThreadPoolExecutor(max_workers=len(chunk)) as executor:
            future_to_watch = {
                executor.submit(self._process_watch, watch, index * self.stagger_seconds): watch
                for index, watch in enumerate(chunk)
            }
            for future in as_completed(future_to_watch):
                watch = future_to_watch[future]
                try:
                    outcome = future.result()
                except Exception as error:  # noqa: BLE001 - one watch must not abort the batch
                    log.error("Watch processing failed: watch=%s name=%s error=%s", watch.id, watch.display_name, error)
                    report.failed[watch.id] = str(error)
                    continue
                report.processed.append(watch.id)
                report.source_failures.extend(outcome.failures)
                if outcome.saved.new_items and watch.notify:
                    report.new_items[watch.id] = outcome.saved.new_items

    def _process_watch(self, watch: Watch, delay: float) -> _WatchOutcome:
        if delay > 0:
            self._sleep(delay)
        with self._lock:
            self._started += 1
            if self._progress is not None:
                self._progress = BatchProgress(
                    current=self._started,
                    total=self._progress.total,
                    current_item=watch.display_name,
                )

        log.info("Processing watch: id=%s name=%s terms=%d", watch.id, watch.display_name, len(watch.search_terms))
        merged: dict[str, Item] = {}
        failures: list[SourceFailure] = []
        for term in watch.search_terms:
            batch = self.search_service.search_all(
                term,
                enabled_sources=watch.enabled_sources or None,
                strict=watch.strict,
                negative_filters=watch.filters,
            )
            failures.extend(batch.failures)
            for item in batch.items:
                merged.setdefault(item.link, item)

        candidates = self.blocked.filter_results(list(merged.values()))
        candidates = self.blacklist.filter_results(candidates)

        saved = self.results.save_results(watch.id, candidates, label=watch.display_name)
        self.watches.update_last_run(watch.id, saved.visible_count)

        if saved.new_items:
            log.info("New items found: watch=%s count=%d", watch.display_name, len(saved.new_items))
            if watch.priority:
                try:
                    self.notifier.send_priority_alert(watch.display_name, saved.new_items)
                except NotificationError as error:
                    log.warning("Priority alert failed: watch=%s error=%s", watch.display_name, error)
        return _WatchOutcome(saved=saved, failures=tuple(failures))
