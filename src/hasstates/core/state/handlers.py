"""Domain-aware registries for named guards and callback actions.

Machines defined from YAML (or by name in Python) refer to guards and actions
by string. Names are looked up per domain - the owner type's name - with a
fallback to handlers registered for every owner:

    guard_registry.register("seatbelt_on", fn, domain="Car")
    guard_registry.register("always", other_fn)   # shared

    guard_registry.get("seatbelt_on", domain="Car")    # fn
    guard_registry.get("always", domain="Car")         # falls back to shared

Guards are called as ``fn(record) -> bool``; actions as
``fn(record, *args, **kwargs)``.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

T = TypeVar("T", bound=Callable[..., Any])


class HandlerRegistry(Generic[T]):
    """Registry with domain-aware handler lookups."""

    SHARED_DOMAIN = "shared"

    def __init__(self, kind: str = "handler", *, parent: Optional["HandlerRegistry[T]"] = None) -> None:
        self.kind = kind
        self.parent = parent
        self._handlers: Dict[str, T] = {}
        self._lock = threading.Lock()

    def _make_key(self, name: str, domain: str = SHARED_DOMAIN) -> str:
        if domain == self.SHARED_DOMAIN:
            return name
        return f"{domain}:{name}"

    def register(self, name: str, handler: T, domain: str = SHARED_DOMAIN) -> None:
        """Register a handler. Overwrites if already registered.

        Raises:
            TypeError: If handler is not callable
        """
        if not callable(handler):
            raise TypeError(f"{self.kind} must be callable")
        with self._lock:
            self._handlers[self._make_key(name, domain)] = handler

    def unregister(self, name: str, domain: str = SHARED_DOMAIN) -> bool:
        with self._lock:
            return self._handlers.pop(self._make_key(name, domain), None) is not None

    def get(self, name: str, domain: str = SHARED_DOMAIN) -> Optional[T]:
        """Get a handler by name: domain-specific first, then shared."""
        return self.lookup(name, () if domain == self.SHARED_DOMAIN else (domain,))

    def lookup(self, name: str, domains: Iterable[str]) -> Optional[T]:
        """First handler registered for one of ``domains`` (in order), else the shared one.

        A registry with a parent consults it only when it has no match itself.
        """
        domains = tuple(domains)
        for domain in domains:
            handler = self._handlers.get(self._make_key(name, domain))
            if handler is not None:
                return handler
        handler = self._handlers.get(name)
        if handler is None and self.parent is not None:
            return self.parent.lookup(name, domains)
        return handler

    def has(self, name: str, domain: str = SHARED_DOMAIN) -> bool:
        return self.get(name, domain) is not None

    def names(self, domain: Optional[str] = None) -> list[str]:
        """Handler names visible to ``domain`` (all keys when omitted)."""
        if domain is None:
            return sorted(self._handlers)
        prefix = f"{domain}:"
        visible = {k[len(prefix):] for k in self._handlers if k.startswith(prefix)}
        visible.update(k for k in self._handlers if ":" not in k)
        return sorted(visible)

    def reset(self) -> None:
        with self._lock:
            self._handlers.clear()


GuardFn = Callable[[Any], Any]
ActionFn = Callable[..., Any]

# Global registry instances
guard_registry: HandlerRegistry[GuardFn] = HandlerRegistry("guard")
action_registry: HandlerRegistry[ActionFn] = HandlerRegistry("action")


def register_guard(name: Optional[str] = None, *, domain: str = HandlerRegistry.SHARED_DOMAIN):
    """Decorator registering a guard in the global registry.

    Example:
        @register_guard("seatbelt_on", domain="Car")
        def seatbelt_on(car):
            return car.seatbelt
    """
    def decorator(fn: GuardFn) -> GuardFn:
        guard_registry.register(name or fn.__name__, fn, domain)
        return fn
    return decorator


def register_action(name: Optional[str] = None, *, domain: str = HandlerRegistry.SHARED_DOMAIN):
    """Decorator registering a callback action in the global registry."""
    def decorator(fn: ActionFn) -> ActionFn:
        action_registry.register(name or fn.__name__, fn, domain)
        return fn
    return decorator


__all__ = [
    "HandlerRegistry",
    "guard_registry",
    "action_registry",
    "register_guard",
    "register_action",
]
