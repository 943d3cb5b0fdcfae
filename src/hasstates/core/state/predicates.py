"""Predicates over records.

Every guard and callback condition is a :class:`Predicate`: something with
``evaluate(record) -> bool``. Loosely-typed condition values are coerced by
:func:`as_predicate`:

- ``None``            -> :data:`ALWAYS`
- ``True``/``False``  -> :class:`Constant`
- ``"name"``          -> :class:`NamedPredicate` (guard registry, then record attribute)
- callable            -> :class:`CallablePredicate` (called with the record)
- a list of those     -> :class:`AllOf`

Python's truthiness rules apply to every result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Tuple, runtime_checkable

from ..exceptions import UnknownHandler
from .handlers import HandlerRegistry, guard_registry

_MISSING = object()


@runtime_checkable
class Predicate(Protocol):
    def evaluate(self, record: Any) -> bool:
        ...


def lookup_handler(registry: HandlerRegistry, name: str, owner: type) -> Optional[Callable[..., Any]]:
    """Find ``name`` for ``owner``, trying each class of its MRO as domain, then shared."""
    return registry.lookup(name, [klass.__name__ for klass in owner.__mro__ if klass is not object])


@dataclass(frozen=True)
class Constant:
    value: bool

    def evaluate(self, record: Any) -> bool:
        return self.value

    def describe(self) -> str:
        return "true" if self.value else "false"


ALWAYS = Constant(True)
NEVER = Constant(False)


@dataclass(frozen=True)
class CallablePredicate:
    """Inline predicate: ``fn(record)``."""

    fn: Callable[[Any], Any]

    def evaluate(self, record: Any) -> bool:
        return bool(self.fn(record))

    def describe(self) -> str:
        return getattr(self.fn, "__name__", repr(self.fn))


@dataclass(frozen=True)
class NamedPredicate:
    """Predicate referenced by name.

    Resolution order: a guard registered under ``name`` for the record's
    type (or one of its bases), a shared guard, then an attribute of the
    record (called when callable).
    """

    name: str
    registry: Optional[HandlerRegistry] = field(default=None, compare=False)

    def evaluate(self, record: Any) -> bool:
        handler = lookup_handler(self.registry or guard_registry, self.name, type(record))
        if handler is not None:
            return bool(handler(record))
        attr = getattr(record, self.name, _MISSING)
        if attr is _MISSING:
            raise UnknownHandler(
                f"Couldn't resolve guard {self.name!r} for {type(record).__name__}",
                context={"guard": self.name, "owner": type(record).__name__},
            )
        return bool(attr() if callable(attr) else attr)

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class AllOf:
    predicates: Tuple[Predicate, ...]

    def evaluate(self, record: Any) -> bool:
        return all(p.evaluate(record) for p in self.predicates)

    def describe(self) -> str:
        return " and ".join(describe(p) for p in self.predicates)


@dataclass(frozen=True)
class Guard:
    """``if`` predicates must all pass and no ``unless`` predicate may pass."""

    if_: Tuple[Predicate, ...] = ()
    unless: Tuple[Predicate, ...] = ()

    @classmethod
    def build(cls, if_: Any = None, unless: Any = None) -> "Guard":
        return cls(if_=_as_tuple(if_), unless=_as_tuple(unless))

    @property
    def is_unconditional(self) -> bool:
        return not self.if_ and not self.unless

    def evaluate(self, record: Any) -> bool:
        if not all(p.evaluate(record) for p in self.if_):
            return False
        return not any(p.evaluate(record) for p in self.unless)

    def describe(self) -> str:
        parts = [f"if {describe(p)}" for p in self.if_]
        parts += [f"unless {describe(p)}" for p in self.unless]
        return ", ".join(parts)


UNGUARDED = Guard()


def as_predicate(value: Any) -> Predicate:
    """Coerce a loosely-typed condition into a :class:`Predicate`."""
    if value is None:
        return ALWAYS
    if isinstance(value, bool):
        return Constant(value)
    if isinstance(value, str):
        return NamedPredicate(value)
    if isinstance(value, Predicate):
        return value
    if callable(value):
        return CallablePredicate(value)
    if isinstance(value, (list, tuple)):
        return AllOf(tuple(as_predicate(v) for v in value))
    raise TypeError(f"Cannot use {type(value).__name__} as a predicate")


def _as_tuple(value: Any) -> Tuple[Predicate, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(as_predicate(v) for v in value)
    return (as_predicate(value),)


def describe(predicate: Predicate) -> str:
    fn = getattr(predicate, "describe", None)
    return fn() if callable(fn) else repr(predicate)


__all__ = [
    "Predicate",
    "Constant",
    "ALWAYS",
    "NEVER",
    "CallablePredicate",
    "NamedPredicate",
    "AllOf",
    "Guard",
    "UNGUARDED",
    "as_predicate",
    "describe",
    "lookup_handler",
]
