"""Per-source grace periods for vanished listings.

Marketplace scrapers are unreliable: a rate-limited or truncated pass looks
exactly like every listing having sold. Sources are grouped into families,
and each family keeps a vanished listing (hidden) for a grace window before it
is deleted. A family with a zero window is *untimed*: its listings never
advance ``last_seen`` and are deleted as soon as they vanish.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence


@dataclass(frozen=True, slots=True)
class SourceFamily:
    """A group of sources sharing one grace window.

    Attributes:
        name: Family identifier (e.g. "auction").
        grace: Retention window for vanished listings; zero means untimed.
        match: Lower-case substrings identifying member source names.
    """

    name: str
    grace: timedelta
    match: tuple[str, ...]

    @property
    def timed(self) -> bool:
        return self.grace > timedelta(0)

    def contains(self, source: str) -> bool:
        lowered = source.lower()
        return any(fragment in lowered for fragment in self.match)


@dataclass(frozen=True, slots=True)
class GracePolicy:
    """Source family classification plus placeholder-title exclusions."""

    families: tuple[SourceFamily, ...]
    placeholder_prefixes: tuple[str, ...] = ()

    def family_for(self, source: str | None) -> SourceFamily | None:
        """Return the first family whose patterns match a source name."""
        if not source:
            return None
        for family in self.families:
            if family.contains(source):
                return family
        return None

    def is_placeholder(self, title: str | None) -> bool:
        """Return True for synthetic "search link" rows from degraded adapters."""
        if not title:
            return False
        return any(title.startswith(prefix) for prefix in self.placeholder_prefixes)


def build_grace_policy(
    families: Sequence[tuple[str, float, Sequence[str]]],
    placeholder_prefixes: Sequence[str] = (),
) -> GracePolicy:
    """Build a policy from ``(name, days, match)`` tuples."""
    return GracePolicy(
        families=tuple(
            SourceFamily(
                name=name,
                grace=timedelta(days=days),
                match=tuple(fragment.lower() for fragment in match if fragment),
            )
            for name, days, match in families
        ),
        placeholder_prefixes=tuple(placeholder_prefixes),
    )


DEFAULT_GRACE_POLICY = build_grace_policy(
    [
        ("flea_market", 2, ("mercari", "paypay")),
        ("auction", 3, ("yahoo",)),
        ("overseas_marketplace", 3, ("taobao", "goofish")),
        ("shop_stock", 14, ("suruga", "mandarake")),
        ("static", 0, ("fril", "rakuma")),
    ],
    placeholder_prefixes=("Search Suruga-ya for",),
)
