"""Shared CLI utilities."""
from __future__ import annotations

import argparse
from pathlib import Path

from hasstates.core.config import resolve_project_root


def get_repo_root(args: argparse.Namespace) -> Path:
    """Project root from ``--repo-root``, else ``HASSTATES_PROJECT_ROOT`` or the cwd."""
    if getattr(args, "repo_root", None):
        return Path(args.repo_root).resolve()
    return Path(resolve_project_root()).resolve()


__all__ = ["get_repo_root"]
