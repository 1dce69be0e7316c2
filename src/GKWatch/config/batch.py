"""Batch domain configuration: chunking, staggering and resume policy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_float,
    expect_int,
    get_required_value,
    get_section,
)


@dataclass(frozen=True, slots=True)
class BatchConfig:
    """Batch runner settings.

    Attributes:
        concurrency: Watches processed concurrently per chunk.
        stagger_seconds: Start delay between watches of one chunk.
        resume_max_age_hours: Checkpoints older than this are discarded.
    """

    concurrency: int
    stagger_seconds: float
    resume_max_age_hours: float


def load_batch(raw: Mapping[str, Any]) -> BatchConfig:
    section = get_section(raw, "batch", required=True)
    return BatchConfig(
        concurrency=expect_int(get_required_value(section, "concurrency", "batch.concurrency"), "batch.concurrency"),
        stagger_seconds=expect_float(
            get_required_value(section, "stagger_seconds", "batch.stagger_seconds"),
            "batch.stagger_seconds",
        ),
        resume_max_age_hours=expect_float(
            get_required_value(section, "resume_max_age_hours", "batch.resume_max_age_hours"),
            "batch.resume_max_age_hours",
        ),
    )


def check_batch(config: BatchConfig) -> None:
    if config.concurrency <= 0:
        raise ValueError("batch.concurrency must be positive")
    if config.stagger_seconds < 0:
        raise ValueError("batch.stagger_seconds must be >= 0")
    if config.resume_max_age_hours <= 0:
        raise ValueError("batch.resume_max_age_hours must be positive")
