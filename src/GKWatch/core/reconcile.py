"""Result reconciliation: diff a watch's stored rows against a fresh pass.

This module is pure. It decides which rows are inserted, refreshed, hidden or
deleted; the storage layer applies the resulting plan inside one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Sequence

from GKWatch.core.grace import DEFAULT_GRACE_POLICY, GracePolicy
from GKWatch.core.models import Item, PersistedResult


@dataclass(slots=True)
class ReconcilePlan:
    """Row operations computed for one watch.

    Attributes:
        upserts: Rows to insert or update, keyed by ``(watch_id, link)``.
        hides: Vanished rows kept inside their grace window (already flagged hidden).
        deletes: Links of rows to remove permanently.
        new_items: Candidates that had no stored counterpart.
        skipped_placeholders: Vanished placeholder rows left untouched.
        unclassified_sources: Sources of vanished rows that matched no family.
    """

    upserts: list[PersistedResult] = field(default_factory=list)
    hides: list[PersistedResult] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)
    new_items: list[Item] = field(default_factory=list)
    skipped_placeholders: int = 0
    unclassified_sources: set[str] = field(default_factory=set)


def dedupe_by_link(items: Iterable[Item]) -> list[Item]:
    """Drop candidates without a link and keep the first item per link."""
    seen: set[str] = set()
    unique: list[Item] = []
    for item in items:
        if not item.link or item.link in seen:
            continue
        seen.add(item.link)
        unique.append(item)
    return unique


def reconcile(
    watch_id: str,
    existing: Sequence[PersistedResult],
    fresh: Sequence[Item],
    *,
    now: datetime,
    policy: GracePolicy = DEFAULT_GRACE_POLICY,
) -> ReconcilePlan:
    """Compute the new persisted state for one watch.

    Existing rows are matched to fresh candidates by link, falling back to
    ``(title.strip(), source)`` for sources that mint new URLs for the same
    listing. Matched rows keep ``first_seen`` and ``is_new`` and are revealed
    again; unmatched candidates become new rows. Vanished rows are hidden
    while inside their family's grace window, unless a same-titled listing
    from that family showed up in this pass, and deleted otherwise.

    Args:
        watch_id: Watch owning the rows.
        existing: Every stored row of the watch, hidden ones included.
        fresh: Candidates of this pass, already merged across terms.
        now: Reference time for ``first_seen``/``last_seen`` and ages.
        policy: Source family classification.

    Returns:
        ReconcilePlan describing the row operations.
    """
    plan = ReconcilePlan()
    candidates = dedupe_by_link(fresh)

    by_link: dict[str, PersistedResult] = {row.link: row for row in existing}
    by_title: dict[tuple[str, str], PersistedResult] = {}
    for row in existing:
        title_key = (row.title or "").strip()
        if title_key:
            by_title.setdefault((title_key, row.source), row)

    fresh_titles: dict[str, set[str]] = {}
    for item in candidates:
        family = policy.family_for(item.source)
        title_key = (item.title or "").strip()
        if family is not None and title_key:
            fresh_titles.setdefault(family.name, set()).add(title_key)

    fresh_links = {item.link for item in candidates}

    for item in candidates:
        found = by_link.get(item.link)
        if found is None:
            title_key = (item.title or "").strip()
            if title_key:
                found = by_title.get((title_key, item.source))

        if found is None:
            plan.upserts.append(
                PersistedResult(
                    watch_id=watch_id,
                    item=item,
                    first_seen=now,
                    last_seen=now,
                    is_new=True,
                    hidden=False,
                )
            )
            plan.new_items.append(item)
            continue

        family = policy.family_for(item.source)
        last_seen = now if family is not None and family.timed else found.last_seen
        plan.upserts.append(
            PersistedResult(
                watch_id=watch_id,
                item=item,
                first_seen=found.first_seen,
                last_seen=last_seen,
                is_new=found.is_new,
                hidden=False,
            )
        )

    for row in existing:
        if row.link in fresh_links:
            continue
        if policy.is_placeholder(row.title):
            plan.skipped_placeholders += 1
            continue

        family = policy.family_for(row.source)
        if family is None:
            plan.unclassified_sources.add(row.source or "")
            plan.deletes.append(row.link)
            continue

        age = now - (row.last_seen or row.first_seen)
        replaced = (row.title or "").strip() in fresh_titles.get(family.name, ())
        if family.timed and age < family.grace and not replaced:
            plan.hides.append(replace(row, hidden=True, is_new=False))
        else:
            plan.deletes.append(row.link)

    return plan
