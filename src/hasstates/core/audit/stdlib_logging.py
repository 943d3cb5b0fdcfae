from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from hasstates.core.utils.io import ensure_directory

_CONFIGURED_LOG_PATH: str | None = None
_FILE_HANDLER: logging.Handler | None = None

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_stdlib_logging(*, log_path: Path, level: str = "INFO", logger_name: str = "hasstates") -> None:
    """Route the ``hasstates`` logger hierarchy to ``log_path``.

    Idempotent per-process: if already configured for the same file, no-op.
    """
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER

    resolved = str(Path(log_path).resolve())
    if _CONFIGURED_LOG_PATH == resolved and _FILE_HANDLER is not None:
        return

    ensure_directory(Path(resolved).parent)

    target = logging.getLogger(logger_name)
    target.setLevel(_level_from_name(level))

    # Replace the previously installed file handler when switching paths.
    if _FILE_HANDLER is not None:
        target.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER.close()
        _FILE_HANDLER = None

    fh = logging.FileHandler(resolved, encoding="utf-8")
    fh.setLevel(_level_from_name(level))
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    target.addHandler(fh)

    _FILE_HANDLER = fh
    _CONFIGURED_LOG_PATH = resolved


def configure_from_config(repo_root: Optional[Path] = None) -> bool:
    """Apply the ``logging.stdlib`` config section. Returns True when a handler was installed."""
    from hasstates.core.config.domains.logging import LoggingConfig

    cfg = LoggingConfig(repo_root=repo_root)
    if not cfg.enabled or not cfg.stdlib_enabled:
        return False
    path = cfg.resolve_stdlib_path(repo_root)
    if path is None:
        return False
    configure_stdlib_logging(log_path=path, level=cfg.stdlib_level)
    return True


def reset_stdlib_logging_for_tests(logger_name: str = "hasstates") -> None:
    """Test-only: clear configured handlers."""
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER
    target = logging.getLogger(logger_name)
    if _FILE_HANDLER is not None:
        target.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER.close()
    _CONFIGURED_LOG_PATH = None
    _FILE_HANDLER = None


__all__ = ["configure_stdlib_logging", "configure_from_config", "reset_stdlib_logging_for_tests"]
