"""Storage domain configuration: database location and result retention."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_float,
    expect_str,
    get_required_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Storage configuration.

    Attributes:
        db_path: SQLite database file.
        results_max_age_days: Rows unseen for longer are removed by cleanup.
    """

    db_path: str
    results_max_age_days: float


def load_storage(raw: Mapping[str, Any]) -> StorageConfig:
    """Load the ``storage`` and ``cleanup`` sections."""
    storage_section = get_section(raw, "storage", required=True)
    cleanup_section = get_section(raw, "cleanup", required=True)
    return StorageConfig(
        db_path=expect_str(get_required_value(storage_section, "db_path", "storage.db_path"), "storage.db_path"),
        results_max_age_days=expect_float(
            get_required_value(cleanup_section, "results_max_age_days", "cleanup.results_max_age_days"),
            "cleanup.results_max_age_days",
        ),
    )


def check_storage(config: StorageConfig) -> None:
    if not config.db_path.strip():
        raise ValueError("storage.db_path must not be empty")
    if config.results_max_age_days <= 0:
        raise ValueError("cleanup.results_max_age_days must be positive")
