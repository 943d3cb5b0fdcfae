"""Small file helpers shared by config loading and the audit log."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

import yaml


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) if missing and return it."""
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_yaml(path: Path, default: Any = None, raise_on_error: bool = False) -> Any:
    """Read YAML with error handling.

    Returns default if file is missing or invalid, unless raise_on_error is True.
    """
    path = Path(path)
    if not path.exists():
        if raise_on_error:
            raise FileNotFoundError(f"File not found: {path}")
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if data is not None else default
    except (OSError, yaml.YAMLError):
        if raise_on_error:
            raise
        return default


def iter_yaml_files(directory: Path) -> Iterator[Path]:
    """Yield ``*.yaml``/``*.yml`` files of ``directory`` in alphabetical order."""
    directory = Path(directory)
    if not directory.is_dir():
        return
    files = [p for p in directory.iterdir() if p.suffix in (".yaml", ".yml") and p.is_file()]
    yield from sorted(files, key=lambda p: p.name)


__all__ = ["ensure_directory", "read_yaml", "iter_yaml_files"]
