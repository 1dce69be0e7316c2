"""Command runner for coordinating CLI execution.

Manages component lifecycle, resource cleanup, logging configuration,
and error handling for command execution.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Sequence

import click

from GKWatch.cli.commands import BatchCommand, SearchCommand, echo_results, format_watch
from GKWatch.config import AppConfig
from GKWatch.notify import create_notifier
from GKWatch.services import create_batch_runner, create_search_service
from GKWatch.storage import Storage, create_storage
from GKWatch.utils.log import configure_logging, log


class CommandRunner:
    """Orchestrates command execution with proper resource management.

    Every command configures logging, opens the database, runs, and closes
    what it opened. Unexpected errors are logged and turned into
    ``click.Abort``.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    @contextmanager
    def _storage(self, action: str) -> Iterator[Storage]:
        configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )
        try:
            storage = create_storage(self.config)
            try:
                yield storage
            finally:
                storage.close()
        except click.ClickException:
            raise
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("%s failed: %s", action, e)
            raise click.Abort from e

    def run_batch(self, action: str, watch_ids: Sequence[str], run_type: str) -> None:
        with self._storage(action) as storage:
            search_service = create_search_service(self.config)
            notifier = create_notifier(self.config)
            try:
                runner = create_batch_runner(
                    self.config,
                    search_service=search_service,
                    storage=storage,
                    notifier=notifier,
                )
                BatchCommand(runner=runner, storage=storage).run(watch_ids, run_type=run_type)
            finally:
                search_service.close()
                notifier.close()

    def resume_batch(self, action: str) -> None:
        with self._storage(action) as storage:
            search_service = create_search_service(self.config)
            notifier = create_notifier(self.config)
            try:
                runner = create_batch_runner(
                    self.config,
                    search_service=search_service,
                    storage=storage,
                    notifier=notifier,
                )
                BatchCommand(runner=runner, storage=storage).resume()
            finally:
                search_service.close()
                notifier.close()

    def search(self, action: str, term: str, *, strict: bool, filters: Sequence[str]) -> None:
        configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )
        try:
            search_service = create_search_service(self.config)
            try:
                SearchCommand(search_service=search_service).execute(term, strict=strict, filters=filters)
            finally:
                search_service.close()
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("Search failed: %s", e)
            raise click.Abort from e

    def watch_add(
        self,
        action: str,
        name: str | None,
        terms: Sequence[str],
        *,
        filters: Sequence[str],
        strict: bool,
        priority: bool,
    ) -> None:
        with self._storage(action) as storage:
            watch = storage.watches.add(name, terms, filters=filters, strict=strict, priority=priority)
            click.echo(format_watch(watch))

    def watch_list(self, action: str) -> None:
        with self._storage(action) as storage:
            counts = storage.results.get_new_counts()
            for watch in storage.watches.list():
                click.echo(format_watch(watch, counts.get(watch.id, 0)))

    def watch_remove(self, action: str, watch_id: str) -> None:
        with self._storage(action) as storage:
            if not storage.watches.remove(watch_id):
                raise click.ClickException(f"unknown watch id: {watch_id}")
            click.echo(f"Removed {watch_id}")

    def watch_merge(self, action: str, watch_ids: Sequence[str], name: str | None) -> None:
        with self._storage(action) as storage:
            merged = storage.watches.merge(watch_ids, name)
            if merged is None:
                raise click.ClickException("merge needs at least two existing watch ids")
            click.echo(format_watch(merged))

    def watch_set_active(self, action: str, watch_id: str, active: bool) -> None:
        with self._storage(action) as storage:
            watch = storage.watches.set_active(watch_id, active)
            if watch is None:
                raise click.ClickException(f"unknown watch id: {watch_id}")
            click.echo(format_watch(watch))

    def results(self, action: str, watch_id: str, *, as_json: bool, include_hidden: bool) -> None:
        with self._storage(action) as storage:
            if storage.watches.get(watch_id) is None:
                raise click.ClickException(f"unknown watch id: {watch_id}")
            echo_results(storage.results.get_results(watch_id, include_hidden=include_hidden), as_json=as_json)

    def seen(self, action: str, watch_id: str | None) -> None:
        with self._storage(action) as storage:
            if watch_id:
                count = storage.results.clear_new_flags(watch_id)
            else:
                count = storage.results.mark_all_seen()
            click.echo(f"Marked {count} result(s) as seen")

    def cleanup(self, action: str) -> None:
        with self._storage(action) as storage:
            removed = storage.results.cleanup_expired(self.config.storage.results_max_age_days)
            click.echo(f"Removed {removed} expired result(s)")

    def blacklist_add(self, action: str, term: str) -> None:
        with self._storage(action) as storage:
            entry = storage.blacklist.add(term)
            click.echo(f"Added {entry.term!r}" if entry else f"{term!r} is already blacklisted")

    def blacklist_remove(self, action: str, term: str) -> None:
        with self._storage(action) as storage:
            if not storage.blacklist.remove(term):
                raise click.ClickException(f"{term!r} is not blacklisted")
            click.echo(f"Removed {term!r}")

    def blacklist_list(self, action: str) -> None:
        with self._storage(action) as storage:
            for entry in storage.blacklist.list():
                click.echo(entry.term)

    def block(self, action: str, url: str, title: str) -> None:
        with self._storage(action) as storage:
            blocked = storage.blocked.add(url, title)
            click.echo(f"Blocked {url}" if blocked else f"{url} is already blocked")
