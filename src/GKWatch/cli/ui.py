"""Click CLI interface definitions.

Defines the command-line interface structure and routes commands
to the command runner.
"""

from __future__ import annotations

from pathlib import Path

import click
from dotenv import load_dotenv

from GKWatch.cli.runner import CommandRunner
from GKWatch.config import load_config_with_defaults


@click.group(help="GKWatch: track marketplace listings for saved searches.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML file layered over the packaged defaults.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """CLI entry group.

    Loads environment variables from .env file before processing config.
    """
    load_dotenv()
    ctx.obj = load_config_with_defaults(config_path)


@cli.command("run")
@click.option("--watch", "watch_ids", multiple=True, help="Only run these watch ids.")
@click.option(
    "--type",
    "run_type",
    type=click.Choice(["manual", "scheduled"]),
    default="manual",
    show_default=True,
)
@click.pass_context
def run_cmd(ctx: click.Context, watch_ids: tuple[str, ...], run_type: str) -> None:
    """Search every active watch and update stored results."""
    CommandRunner(ctx.obj).run_batch(ctx.command.name, watch_ids, run_type)


@cli.command("resume")
@click.pass_context
def resume_cmd(ctx: click.Context) -> None:
    """Continue an interrupted batch run."""
    CommandRunner(ctx.obj).resume_batch(ctx.command.name)


@cli.command("search")
@click.argument("term")
@click.option("--loose", is_flag=True, help="Do not enforce every query term on titles.")
@click.option("--filter", "filters", multiple=True, help="Drop titles containing this text.")
@click.pass_context
def search_cmd(ctx: click.Context, term: str, loose: bool, filters: tuple[str, ...]) -> None:
    """Search all sources once and print the results."""
    CommandRunner(ctx.obj).search(ctx.command.name, term, strict=not loose, filters=filters)


@cli.group("watch")
def watch_group() -> None:
    """Manage saved watches."""


@watch_group.command("add")
@click.argument("name")
@click.argument("terms", nargs=-1, required=True)
@click.option("--filter", "filters", multiple=True, help="Negative title filter.")
@click.option("--loose", is_flag=True)
@click.option("--priority", is_flag=True, help="Push an alert when new items appear.")
@click.pass_context
def watch_add_cmd(
    ctx: click.Context,
    name: str,
    terms: tuple[str, ...],
    filters: tuple[str, ...],
    loose: bool,
    priority: bool,
) -> None:
    CommandRunner(ctx.obj).watch_add(
        "watch", name, terms, filters=filters, strict=not loose, priority=priority
    )


@watch_group.command("list")
@click.pass_context
def watch_list_cmd(ctx: click.Context) -> None:
    CommandRunner(ctx.obj).watch_list("watch")


@watch_group.command("remove")
@click.argument("watch_id")
@click.pass_context
def watch_remove_cmd(ctx: click.Context, watch_id: str) -> None:
    CommandRunner(ctx.obj).watch_remove("watch", watch_id)


@watch_group.command("merge")
@click.argument("watch_ids", nargs=-1, required=True)
@click.option("--name", default=None, help="Display name of the merged watch.")
@click.pass_context
def watch_merge_cmd(ctx: click.Context, watch_ids: tuple[str, ...], name: str | None) -> None:
    """Combine several watches into one with the union of their terms."""
    CommandRunner(ctx.obj).watch_merge("watch", watch_ids, name)


@watch_group.command("pause")
@click.argument("watch_id")
@click.pass_context
def watch_pause_cmd(ctx: click.Context, watch_id: str) -> None:
    CommandRunner(ctx.obj).watch_set_active("watch", watch_id, False)


@watch_group.command("activate")
@click.argument("watch_id")
@click.pass_context
def watch_activate_cmd(ctx: click.Context, watch_id: str) -> None:
    CommandRunner(ctx.obj).watch_set_active("watch", watch_id, True)


@cli.command("results")
@click.argument("watch_id")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.option("--all", "include_hidden", is_flag=True, help="Include hidden results.")
@click.pass_context
def results_cmd(ctx: click.Context, watch_id: str, as_json: bool, include_hidden: bool) -> None:
    """Show stored results for a watch, new ones first."""
    CommandRunner(ctx.obj).results(ctx.command.name, watch_id, as_json=as_json, include_hidden=include_hidden)


@cli.command("seen")
@click.option("--watch", "watch_id", default=None, help="Only clear this watch.")
@click.pass_context
def seen_cmd(ctx: click.Context, watch_id: str | None) -> None:
    """Clear new flags."""
    CommandRunner(ctx.obj).seen(ctx.command.name, watch_id)


@cli.command("cleanup")
@click.pass_context
def cleanup_cmd(ctx: click.Context) -> None:
    """Delete results older than the configured maximum age."""
    CommandRunner(ctx.obj).cleanup(ctx.command.name)


@cli.group("blacklist")
def blacklist_group() -> None:
    """Manage global title blacklist terms."""


@blacklist_group.command("add")
@click.argument("term")
@click.pass_context
def blacklist_add_cmd(ctx: click.Context, term: str) -> None:
    CommandRunner(ctx.obj).blacklist_add("blacklist", term)


@blacklist_group.command("remove")
@click.argument("term")
@click.pass_context
def blacklist_remove_cmd(ctx: click.Context, term: str) -> None:
    CommandRunner(ctx.obj).blacklist_remove("blacklist", term)


@blacklist_group.command("list")
@click.pass_context
def blacklist_list_cmd(ctx: click.Context) -> None:
    CommandRunner(ctx.obj).blacklist_list("blacklist")


@cli.command("block")
@click.argument("url")
@click.option("--title", default="", help="Title remembered with the blocked listing.")
@click.pass_context
def block_cmd(ctx: click.Context, url: str, title: str) -> None:
    """Never show the listing at URL again."""
    CommandRunner(ctx.obj).block(ctx.command.name, url, title)
