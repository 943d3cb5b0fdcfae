"""Centralized configuration caching.

Provides a single source of truth for loaded configuration across all domain
configs. All domain configs use this module's caching instead of implementing
their own.
"""
from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from hasstates.core.utils.io import iter_yaml_files

from .manager import ENV_PREFIX, PROJECT_CONFIG_DIR, ConfigManager, resolve_project_root

_config_cache: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


def _normalize_repo_root(repo_root: Optional[Path]) -> Path:
    if repo_root is None:
        return resolve_project_root()
    return Path(repo_root).expanduser().resolve()


def _cache_key(repo_root: Optional[Path]) -> str:
    """Generate cache key from repo_root, env overrides and project config mtimes.

    Without the fingerprints, cache hits could return stale config after
    tests (or long-running processes) change env vars or YAML files.
    """
    root = _normalize_repo_root(repo_root)
    env_items = sorted(
        (k, os.environ.get(k, ""))
        for k in os.environ.keys()
        if k.startswith(ENV_PREFIX)
    )
    files: list[tuple[str, int, int]] = []
    for p in iter_yaml_files(root / PROJECT_CONFIG_DIR / "config"):
        st = p.stat()
        files.append((p.name, int(st.st_mtime_ns), int(st.st_size)))
    fp = hashlib.sha256(repr((env_items, files)).encode("utf-8")).hexdigest()[:12]
    return f"{root}:{fp}"


def get_cached_config(repo_root: Optional[Path] = None, *, validate: bool = False) -> Dict[str, Any]:
    """Return the merged configuration for ``repo_root`` (cached)."""
    key = _cache_key(repo_root)
    with _cache_lock:
        cached = _config_cache.get(key)
    if cached is not None:
        return cached

    cfg = ConfigManager(_normalize_repo_root(repo_root)).load_config(validate=validate)
    with _cache_lock:
        _config_cache[key] = cfg
    return cfg


def clear_all_caches() -> None:
    """Drop every cached configuration."""
    with _cache_lock:
        _config_cache.clear()


__all__ = ["get_cached_config", "clear_all_caches"]
