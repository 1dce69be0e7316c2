"""Command implementations for the GKWatch CLI.

Encapsulates the work behind each command, separated from click parameter
handling. Output goes through ``click.echo`` so commands stay testable with
``CliRunner``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Sequence

import click

from GKWatch.core.models import Item, PersistedResult, SearchBatch, SourceFailure, Watch
from GKWatch.services.batch import BatchReport, BatchRunner
from GKWatch.services.search import ListingSearchService
from GKWatch.storage import Storage
from GKWatch.utils.log import log


@dataclass(slots=True)
class BatchCommand:
    """Run or resume a batch over watches."""

    runner: BatchRunner
    storage: Storage

    def run(self, watch_ids: Sequence[str] = (), *, run_type: str = "manual") -> BatchReport | None:
        watches = None
        if watch_ids:
            watches = []
            for watch_id in watch_ids:
                watch = self.storage.watches.get(watch_id)
                if watch is None:
                    raise click.BadParameter(f"unknown watch id: {watch_id}", param_hint="--watch")
                watches.append(watch)
        report = self.runner.run(watches, run_type=run_type)
        self._echo_report(report)
        return report

    def resume(self) -> BatchReport | None:
        report = self.runner.resume()
        if report is None:
            click.echo("Nothing to resume.")
            return None
        self._echo_report(report)
        return report

    def _echo_report(self, report: BatchReport | None) -> None:
        if report is None:
            click.echo("A batch is already running.")
            return
        status = "aborted" if report.aborted else "finished"
        click.echo(
            f"Batch {status}: processed={len(report.processed)} failed={len(report.failed)} total={report.total}"
        )
        for watch_id, items in report.new_items.items():
            watch = self.storage.watches.get(watch_id)
            name = watch.display_name if watch else watch_id
            click.echo(f"  {name}: {len(items)} new")
        for watch_id, error in report.failed.items():
            click.echo(f"  failed {watch_id}: {error}")
        _echo_failures(report.source_failures)


@dataclass(slots=True)
class SearchCommand:
    """Ad-hoc aggregated search without persisting anything."""

    search_service: ListingSearchService

    def execute(self, term: str, *, strict: bool, filters: Sequence[str]) -> SearchBatch:
        batch = self.search_service.search_all(term, strict=strict, negative_filters=filters)
        log.info("Search finished: term=%r items=%d failures=%d", term, len(batch.items), len(batch.failures))
        for item in batch.items:
            click.echo(format_item(item))
        _echo_failures(batch.failures)
        return batch


def format_item(item: Item) -> str:
    price = f" ({item.price})" if item.price else ""
    return f"[{item.source}] {item.title}{price}\n    {item.link}"


def format_watch(watch: Watch, new_count: int = 0) -> str:
    flags = []
    if not watch.active:
        flags.append("paused")
    if watch.priority:
        flags.append("priority")
    if not watch.strict:
        flags.append("loose")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    badge = f" ({new_count} new)" if new_count else ""
    return f"{watch.id}  {watch.display_name}{badge}{suffix}\n    terms: {' / '.join(watch.search_terms)}"


def result_to_dict(row: PersistedResult) -> dict:
    item = row.item
    return {
        "title": item.title,
        "link": item.link,
        "source": item.source,
        "price": item.price,
        "image": item.image,
        "bidPrice": item.bid_price,
        "binPrice": item.bin_price,
        "endTime": item.end_time,
        "firstSeen": row.first_seen.isoformat(),
        "lastSeen": row.last_seen.isoformat() if row.last_seen else None,
        "isNew": row.is_new,
        "hidden": row.hidden,
    }


def echo_results(rows: Sequence[PersistedResult], *, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([result_to_dict(row) for row in rows], ensure_ascii=False, indent=2))
        return
    for row in rows:
        marker = "* " if row.is_new else "  "
        click.echo(marker + format_item(row.item))


def _echo_failures(failures: Sequence[SourceFailure]) -> None:
    seen: set[tuple[str, str]] = set()
    for failure in failures:
        key = (failure.source, failure.reason)
        if key in seen:
            continue
        seen.add(key)
        click.echo(f"warning: {failure.source} unavailable: {failure.reason}", err=True)
