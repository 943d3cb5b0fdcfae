"""Domain-specific configuration accessors."""
from .engine import EngineConfig, RetryPolicy
from .logging import LoggingConfig

__all__ = ["EngineConfig", "RetryPolicy", "LoggingConfig"]
