"""Grace domain configuration: source families and their retention windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from GKWatch.config.common import (
    expect_float,
    expect_mapping,
    expect_str_list,
    get_optional_value,
    get_required_value,
    get_section,
)
from GKWatch.core.grace import GracePolicy, build_grace_policy


@dataclass(frozen=True, slots=True)
class GraceFamilyConfig:
    name: str
    days: float
    match: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class GraceConfig:
    """Source families in classification order plus placeholder prefixes."""

    families: tuple[GraceFamilyConfig, ...]
    placeholder_prefixes: tuple[str, ...]

    def to_policy(self) -> GracePolicy:
        return build_grace_policy(
            [(family.name, family.days, family.match) for family in self.families],
            self.placeholder_prefixes,
        )


def load_grace(raw: Mapping[str, Any]) -> GraceConfig:
    """Load the ``grace`` section.

    Families keep their YAML order; the first family whose ``match``
    substrings occur in a source name wins.
    """
    section = get_section(raw, "grace", required=True)
    families_raw = expect_mapping(get_required_value(section, "families", "grace.families"), "grace.families")
    families = []
    for name, value in families_raw.items():
        key = f"grace.families.{name}"
        family = expect_mapping(value, key)
        families.append(
            GraceFamilyConfig(
                name=name,
                days=expect_float(get_required_value(family, "days", f"{key}.days"), f"{key}.days"),
                match=tuple(
                    m.strip().lower()
                    for m in expect_str_list(get_required_value(family, "match", f"{key}.match"), f"{key}.match")
                    if m.strip()
                ),
            )
        )
    prefixes = expect_str_list(
        get_optional_value(section, "placeholder_prefixes", []),
        "grace.placeholder_prefixes",
    )
    return GraceConfig(
        families=tuple(families),
        placeholder_prefixes=tuple(p for p in prefixes if p),
    )


def check_grace(config: GraceConfig) -> None:
    for family in config.families:
        if family.days < 0:
            raise ValueError(f"grace.families.{family.name}.days must be >= 0")
        if not family.match:
            raise ValueError(f"grace.families.{family.name}.match must include at least one pattern")
