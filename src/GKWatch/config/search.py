"""Search domain configuration: source adapters and fan-out limits."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_bool,
    expect_float,
    expect_int,
    expect_mapping,
    expect_str,
    get_optional_value,
    get_required_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class SourceSpec:
    """One configured source adapter.

    Attributes:
        adapter: ``module:attr`` path, or a builtin alias such as ``http_json``.
        enabled: Global default for whether the source is searched.
        strict: Global default strictness, AND-combined with each watch.
        options: Keyword arguments passed to the adapter class.
    """

    adapter: str
    enabled: bool = True
    strict: bool = True
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SearchConfig:
    """Validated source list and aggregator limits."""

    sources: Mapping[str, SourceSpec]
    timeout: float
    max_workers: int
    max_consecutive_timeouts: int

    @property
    def enabled_map(self) -> dict[str, bool]:
        return {name: spec.enabled for name, spec in self.sources.items()}

    @property
    def strict_map(self) -> dict[str, bool]:
        return {name: spec.strict for name, spec in self.sources.items()}


def load_search(raw: Mapping[str, Any]) -> SearchConfig:
    """Load the ``search`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing.
    """
    section = get_section(raw, "search", required=True)
    sources_raw = get_optional_value(section, "sources", None) or {}
    sources = {
        name: _parse_source(value, f"search.sources.{name}")
        for name, value in expect_mapping(sources_raw, "search.sources").items()
    }
    return SearchConfig(
        sources=MappingProxyType(sources),
        timeout=expect_float(get_required_value(section, "timeout", "search.timeout"), "search.timeout"),
        max_workers=expect_int(get_required_value(section, "max_workers", "search.max_workers"), "search.max_workers"),
        max_consecutive_timeouts=expect_int(
            get_required_value(section, "max_consecutive_timeouts", "search.max_consecutive_timeouts"),
            "search.max_consecutive_timeouts",
        ),
    )


def check_search(config: SearchConfig) -> None:
    if config.timeout <= 0:
        raise ValueError("search.timeout must be positive")
    if config.max_workers <= 0:
        raise ValueError("search.max_workers must be positive")
    if config.max_consecutive_timeouts < 0:
        raise ValueError("search.max_consecutive_timeouts must be >= 0")
    for name, spec in config.sources.items():
        if not name.strip():
            raise ValueError("search.sources names must not be empty")
        if not spec.adapter.strip():
            raise ValueError(f"search.sources.{name}.adapter must not be empty")


def _parse_source(value: Any, config_key: str) -> SourceSpec:
    section = expect_mapping(value, config_key)
    options = get_optional_value(section, "options", None) or {}
    return SourceSpec(
        adapter=expect_str(get_required_value(section, "adapter", f"{config_key}.adapter"), f"{config_key}.adapter"),
        enabled=expect_bool(get_optional_value(section, "enabled", True), f"{config_key}.enabled"),
        strict=expect_bool(get_optional_value(section, "strict", True), f"{config_key}.strict"),
        options=dict(expect_mapping(options, f"{config_key}.options")),
    )
