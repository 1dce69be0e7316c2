"""Public configuration API for GKWatch."""

from __future__ import annotations

from GKWatch.config.app import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    check_cross_domain,
    load_config,
    load_config_with_defaults,
    parse_config_dict,
)
from GKWatch.config.batch import BatchConfig
from GKWatch.config.grace import GraceConfig, GraceFamilyConfig
from GKWatch.config.matching import MatchingConfig
from GKWatch.config.notify import NotifyConfig, NtfyConfig
from GKWatch.config.runtime import RuntimeConfig
from GKWatch.config.search import SearchConfig, SourceSpec
from GKWatch.config.storage import StorageConfig

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "RuntimeConfig",
    "StorageConfig",
    "SearchConfig",
    "SourceSpec",
    "GraceConfig",
    "GraceFamilyConfig",
    "MatchingConfig",
    "BatchConfig",
    "NotifyConfig",
    "NtfyConfig",
    "AppConfig",
    "load_config",
    "load_config_with_defaults",
    "parse_config_dict",
    "check_cross_domain",
]
