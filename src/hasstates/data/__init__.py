"""Bundled resources: default configuration and JSON schemas (as YAML)."""
from __future__ import annotations

from importlib import resources
from pathlib import Path


def get_data_path(subpackage: str, filename: str = "") -> Path:
    """Path of a bundled resource directory, or of ``filename`` inside it.

    >>> get_data_path("schemas", "machine.schema.yaml").name
    'machine.schema.yaml'
    """
    base = Path(str(resources.files("hasstates.data") / subpackage))
    return base / filename if filename else base


__all__ = ["get_data_path"]
