"""Matching domain configuration: synonym classes and kana folding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_mapping,
    expect_str,
    expect_str_list,
    get_required_value,
    get_section,
)
from GKWatch.core.query import MatchPolicy


@dataclass(frozen=True, slots=True)
class MatchingConfig:
    synonym_classes: tuple[tuple[str, ...], ...]
    kana_pairs: Mapping[str, str]

    def to_policy(self) -> MatchPolicy:
        return MatchPolicy(synonym_classes=self.synonym_classes, kana_pairs=dict(self.kana_pairs))


def load_matching(raw: Mapping[str, Any]) -> MatchingConfig:
    """Load the ``matching`` section."""
    section = get_section(raw, "matching", required=True)
    classes_raw = get_required_value(section, "synonym_classes", "matching.synonym_classes")
    if not isinstance(classes_raw, list):
        raise TypeError("matching.synonym_classes must be a list")
    classes = tuple(
        tuple(expect_str_list(group, f"matching.synonym_classes[{idx}]"))
        for idx, group in enumerate(classes_raw)
    )
    pairs_raw = expect_mapping(get_required_value(section, "kana_pairs", "matching.kana_pairs"), "matching.kana_pairs")
    pairs = {key: expect_str(value, f"matching.kana_pairs.{key}") for key, value in pairs_raw.items()}
    return MatchingConfig(synonym_classes=classes, kana_pairs=pairs)


def check_matching(config: MatchingConfig) -> None:
    for key, value in config.kana_pairs.items():
        if len(key) != 1 or len(value) != 1:
            raise ValueError(f"matching.kana_pairs entries must map one character to one character: {key!r}")
    for idx, group in enumerate(config.synonym_classes):
        if len(group) < 2:
            raise ValueError(f"matching.synonym_classes[{idx}] must include at least two terms")
