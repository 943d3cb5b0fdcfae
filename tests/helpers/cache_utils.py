"""Cache utilities for test isolation."""
from __future__ import annotations


def reset_hasstates_caches() -> None:
    """Reset every module-level cache and global registry."""
    from hasstates.core.audit.stdlib_logging import reset_stdlib_logging_for_tests
    from hasstates.core.config.cache import clear_all_caches
    from hasstates.core.state.handlers import action_registry, guard_registry

    clear_all_caches()
    guard_registry.reset()
    action_registry.reset()
    reset_stdlib_logging_for_tests()
