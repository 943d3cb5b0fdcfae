"""Timezone-aware time helpers.

Formatting choices are drawn from the ``time.iso8601`` config section
(bundled defaults in ``hasstates/data/config/time.yaml``).
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


def _cfg(repo_root: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``time.iso8601`` config section.

    Raises:
        RuntimeError: If the section or one of its fields is missing
    """
    from ..config.cache import get_cached_config

    full_config = get_cached_config(repo_root=repo_root)
    config = (full_config.get("time") or {}).get("iso8601")
    if not isinstance(config, dict):
        raise RuntimeError(
            "time.iso8601 configuration section is missing. "
            "Add 'time.iso8601' section to your YAML config."
        )

    required_fields = ["timespec", "use_z_suffix", "strip_microseconds"]
    missing_fields = [f for f in required_fields if f not in config]
    if missing_fields:
        raise RuntimeError(
            f"time.iso8601 configuration missing required fields: {missing_fields}"
        )
    return config


def utc_now(repo_root: Optional[Path] = None) -> datetime:
    """Return timezone-aware UTC datetime using config-driven precision."""
    cfg = _cfg(repo_root)
    now = datetime.now(timezone.utc)
    if cfg["strip_microseconds"]:
        now = now.replace(microsecond=0)
    return now


def format_timestamp(dt: datetime, repo_root: Optional[Path] = None) -> str:
    """Format ``dt`` as ISO 8601 according to YAML configuration."""
    cfg = _cfg(repo_root)
    dt = dt.astimezone(timezone.utc)
    ts = dt.isoformat(timespec=cfg["timespec"]) if cfg["timespec"] else dt.isoformat()
    if cfg["use_z_suffix"]:
        ts = ts.replace("+00:00", "Z")
    return ts


def utc_timestamp(repo_root: Optional[Path] = None) -> str:
    """Return ISO 8601 UTC timestamp according to YAML configuration."""
    return format_timestamp(utc_now(repo_root), repo_root)


__all__ = ["utc_now", "utc_timestamp", "format_timestamp"]
