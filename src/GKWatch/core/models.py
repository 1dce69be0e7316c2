from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

# Adapter payloads use camelCase for the optional auction fields.
_ITEM_KEY_ALIASES = {
    "bidPrice": "bid_price",
    "binPrice": "bin_price",
    "endTime": "end_time",
    "url": "link",
}
_ITEM_FIELDS = ("title", "link", "source", "price", "image", "bid_price", "bin_price", "end_time")


@dataclass(frozen=True, slots=True)
class Item:
    """Candidate listing returned by a source adapter.

    ``link`` is the natural key inside one search pass.

    Attributes:
        title: Listing title as shown on the marketplace.
        link: Listing URL.
        source: Display name of the marketplace (e.g. "Yahoo Auctions").
        price: Price text as scraped.
        image: Thumbnail URL.
        bid_price: Current bid for auction listings.
        bin_price: Buy-it-now price for auction listings.
        end_time: Auction end time text.
        extra: Extension point for adapter-specific fields.
    """

    title: str
    link: str
    source: str
    price: str = ""
    image: str = ""
    bid_price: Optional[str] = None
    bin_price: Optional[str] = None
    end_time: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, default_source: str = "") -> Item:
        """Build an item from an adapter's dict payload.

        Unknown keys are kept in ``extra``.
        """
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            name = _ITEM_KEY_ALIASES.get(key, key)
            if name in _ITEM_FIELDS:
                values.setdefault(name, value)
            else:
                extra[key] = value
        return cls(
            title=str(values.get("title") or ""),
            link=str(values.get("link") or ""),
            source=str(values.get("source") or default_source),
            price=str(values.get("price") or ""),
            image=str(values.get("image") or ""),
            bid_price=_optional_str(values.get("bid_price")),
            bin_price=_optional_str(values.get("bin_price")),
            end_time=_optional_str(values.get("end_time")),
            extra=extra,
        )

    def with_source(self, source: str) -> Item:
        return replace(self, source=source)


@dataclass(frozen=True, slots=True)
class SourceFailure:
    """An adapter-level failure reported as data."""

    source: str
    reason: str


@dataclass(frozen=True, slots=True)
class SourceResult:
    """Tagged outcome of one adapter call.

    A result is OK when ``error`` is None. A failed result may still carry
    items when an adapter returned partial data alongside an error.
    """

    source: str
    items: tuple[Item, ...] = ()
    error: Optional[str] = None

    @classmethod
    def ok(cls, source: str, items: Sequence[Item]) -> SourceResult:
        return cls(source=source, items=tuple(items))

    @classmethod
    def err(cls, source: str, reason: str) -> SourceResult:
        return cls(source=source, error=reason or "unknown error")

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def failure(self) -> Optional[SourceFailure]:
        if self.error is None:
            return None
        return SourceFailure(source=self.source, reason=self.error)


@dataclass(slots=True)
class SearchBatch:
    """Aggregated output of one search term across sources."""

    items: list[Item] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PersistedResult:
    """One stored row of a watch's result set, keyed by ``(watch_id, link)``.

    Attributes:
        watch_id: Owning watch.
        item: Latest listing data.
        first_seen: Creation time, never changed after insert.
        last_seen: Last time a timed source returned the listing.
        is_new: Not yet acknowledged by the user.
        hidden: Missing from the latest pass but inside its grace window.
    """

    watch_id: str
    item: Item
    first_seen: datetime
    last_seen: Optional[datetime] = None
    is_new: bool = True
    hidden: bool = False

    @property
    def link(self) -> str:
        return self.item.link

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def source(self) -> str:
        return self.item.source


@dataclass(frozen=True, slots=True)
class Watch:
    """A persistent user search.

    ``display_name`` is only shown to people; ``search_terms`` are sent to
    the sources, one search per term, with results OR'd together.
    """

    id: str
    display_name: str
    search_terms: tuple[str, ...]
    filters: tuple[str, ...] = ()
    enabled_sources: Mapping[str, bool] = field(default_factory=dict)
    strict: bool = True
    active: bool = True
    notify: bool = True
    priority: bool = False
    created_at: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_result_count: int = 0
    sort_order: Optional[int] = None


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    """Result of reconciling one watch's fresh candidates."""

    new_items: tuple[Item, ...]
    visible_count: int
    hidden_count: int = 0
    deleted_count: int = 0


@dataclass(frozen=True, slots=True)
class ResultsMeta:
    """Denormalized per-watch counters for dashboard reads."""

    watch_id: str
    updated_at: Optional[datetime]
    new_count: int


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
