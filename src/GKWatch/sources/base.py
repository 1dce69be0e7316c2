"""Adapter boundary helpers.

Adapters may return a ``SourceResult``, a list of items or mappings, ``None``
(source unavailable), or an error-shaped mapping ``{"error": ..., "source": ...}``.
``as_source_result`` decides the tagged outcome once, at the boundary, so the
rest of the pipeline never inspects items for an ``error`` field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from GKWatch.core.models import Item, SourceResult

RawSearchFunc = Callable[..., Any]


def as_source_result(name: str, raw: Any) -> SourceResult:
    """Normalize an adapter return value into a ``SourceResult``.

    Args:
        name: Source name used for failures and items without a source.
        raw: Whatever the adapter returned.

    Returns:
        SourceResult: OK with items, or an error carrying the reason. Error
        sentinels mixed into a list are split out; the valid items are kept
        alongside the first reported reason.
    """
    if isinstance(raw, SourceResult):
        return raw
    if raw is None:
        return SourceResult.err(name, "source returned no data")
    if isinstance(raw, Mapping):
        if _is_error_sentinel(raw):
            return SourceResult.err(str(raw.get("source") or name), str(raw.get("error")))
        return SourceResult.ok(name, [Item.from_mapping(raw, default_source=name)])
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
        return SourceResult.err(name, f"unexpected adapter payload: {type(raw).__name__}")

    items: list[Item] = []
    reasons: list[str] = []
    for entry in raw:
        if isinstance(entry, Item):
            items.append(entry if entry.source else entry.with_source(name))
        elif isinstance(entry, Mapping):
            if _is_error_sentinel(entry):
                reasons.append(str(entry.get("error")))
            else:
                items.append(Item.from_mapping(entry, default_source=name))
    if reasons:
        return SourceResult(source=name, items=tuple(items), error=reasons[0] or "unknown error")
    return SourceResult.ok(name, items)


def _is_error_sentinel(entry: Mapping[str, Any]) -> bool:
    return bool(entry.get("error")) and not entry.get("link") and not entry.get("url")


@dataclass(slots=True)
class CallableSource:
    """Wrap a plain search function as a listing source.

    The function is called as ``func(term, strict=..., filters=...)`` when
    ``accepts_options`` is set, otherwise as ``func(term)``.
    """

    name: str
    func: RawSearchFunc
    accepts_options: bool = True
    closer: Callable[[], None] | None = field(default=None, repr=False)

    def search(self, term: str, *, strict: bool = True, filters: Sequence[str] = ()) -> SourceResult:
        if self.accepts_options:
            raw = self.func(term, strict=strict, filters=list(filters))
        else:
            raw = self.func(term)
        return as_source_result(self.name, raw)

    def close(self) -> None:
        if self.closer is not None:
            self.closer()
