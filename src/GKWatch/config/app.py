"""Application config orchestration and YAML loading entrypoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

import yaml

from GKWatch.config.batch import BatchConfig, check_batch, load_batch
from GKWatch.config.grace import GraceConfig, check_grace, load_grace
from GKWatch.config.matching import MatchingConfig, check_matching, load_matching
from GKWatch.config.notify import NotifyConfig, check_notify, load_notify
from GKWatch.config.runtime import RuntimeConfig, check_runtime, load_runtime
from GKWatch.config.search import SearchConfig, check_search, load_search
from GKWatch.config.storage import StorageConfig, check_storage, load_storage
from GKWatch.utils.log import log

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yml")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application root configuration."""

    runtime: RuntimeConfig
    storage: StorageConfig
    search: SearchConfig
    grace: GraceConfig
    matching: MatchingConfig
    batch: BatchConfig
    notify: NotifyConfig


def parse_config_dict(raw: Mapping[str, Any]) -> AppConfig:
    """Parse normalized mapping into AppConfig."""
    runtime = load_runtime(raw)
    storage = load_storage(raw)
    search = load_search(raw)
    grace = load_grace(raw)
    matching = load_matching(raw)
    batch = load_batch(raw)
    notify = load_notify(raw)

    check_runtime(runtime)
    check_storage(storage)
    check_search(search)
    check_grace(grace)
    check_matching(matching)
    check_batch(batch)
    check_notify(notify)

    config = AppConfig(
        runtime=runtime,
        storage=storage,
        search=search,
        grace=grace,
        matching=matching,
        batch=batch,
        notify=notify,
    )
    check_cross_domain(config)
    return config


def load_config(path: Path) -> AppConfig:
    """Load YAML config file without default merge."""
    return load_config_with_defaults(path, default_path=path)


def load_config_with_defaults(
    config_path: Path | None = None,
    default_path: Path = DEFAULT_CONFIG_PATH,
) -> AppConfig:
    """Load config by merging defaults and optional override."""
    base = parse_yaml(default_path.read_text(encoding="utf-8"))
    if config_path is None or config_path == default_path:
        return parse_config_dict(base)
    override = parse_yaml(config_path.read_text(encoding="utf-8"))
    merged = merge_config_dicts(base, override)
    return parse_config_dict(merged)


def check_cross_domain(config: AppConfig) -> None:
    """Validate cross-domain constraints.

    Sources without a grace family are allowed: their vanished listings are
    deleted immediately, which is worth a warning at startup. Families whose
    grace window outlasts ``cleanup.results_max_age_days`` keep their window
    during cleanup.
    """
    policy = config.grace.to_policy()
    for name in config.search.sources:
        if policy.family_for(name) is None:
            log.warning("search.sources.%s matches no grace family; vanished listings are deleted at once", name)
    max_age = timedelta(days=config.storage.results_max_age_days)
    for family in policy.families:
        if family.grace > max_age:
            log.debug(
                "grace.families.%s outlasts cleanup.results_max_age_days; cleanup keeps its rows for %s",
                family.name,
                family.grace,
            )


def parse_yaml(text: str) -> dict[str, Any]:
    """Parse raw YAML text into a mapping."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two config mappings."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged
