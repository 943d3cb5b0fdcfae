"""Domain-specific configuration for the transition engine."""
from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

from ..base import BaseDomainConfig


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    initial_delay: float
    backoff_factor: float
    max_delay: float


class EngineConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "engine"

    @cached_property
    def record_changes(self) -> bool:
        """Default for machines that do not say whether to record state changes."""
        return bool(self.section.get("record_changes", True))

    @cached_property
    def state_attribute(self) -> str:
        return str(self.section.get("state_attribute") or "state")

    @cached_property
    def method_callbacks(self) -> bool:
        """Whether ``before_enter_<state>``-style record methods run as callbacks."""
        return bool(self.section.get("method_callbacks", True))

    @cached_property
    def conflict_retry(self) -> RetryPolicy:
        raw = self.section.get("conflict_retry") or {}
        return RetryPolicy(
            max_attempts=max(1, int(raw.get("max_attempts", 3) or 1)),
            initial_delay=float(raw.get("initial_delay", 0.0) or 0.0),
            backoff_factor=float(raw.get("backoff_factor", 2.0) or 1.0),
            max_delay=float(raw.get("max_delay", 1.0) or 0.0),
        )


__all__ = ["EngineConfig", "RetryPolicy"]
