"""Common argument registration helpers for CLI commands."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    """Add --json flag for JSON output mode."""
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_repo_root_flag(parser: argparse.ArgumentParser) -> None:
    """Add --repo-root flag for project root override."""
    parser.add_argument(
        "--repo-root",
        type=str,
        help="Override project root path (where .hasstates/config lives)",
    )


def add_machine_file_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "file",
        help="YAML file with a top-level 'machines' mapping",
    )


__all__ = ["add_json_flag", "add_repo_root_flag", "add_machine_file_arg"]
