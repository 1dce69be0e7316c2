"""CLI package for GKWatch command orchestration."""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from GKWatch.cli.runner import CommandRunner
from GKWatch.cli.ui import cli


def main() -> None:
    """Run GKWatch CLI.

    Entry point referenced by console script in pyproject.toml.
    """
    cli()
