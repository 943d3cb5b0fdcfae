"""Configuration loading (bundled YAML defaults, project YAML, env overrides)."""
from .manager import ConfigManager, resolve_project_root
from .cache import get_cached_config, clear_all_caches
from .base import BaseDomainConfig
from .domains import EngineConfig, LoggingConfig, RetryPolicy

__all__ = [
    "ConfigManager",
    "resolve_project_root",
    "get_cached_config",
    "clear_all_caches",
    "BaseDomainConfig",
    "EngineConfig",
    "LoggingConfig",
    "RetryPolicy",
]
