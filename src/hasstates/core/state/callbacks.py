"""Conditional callbacks attached to states and events.

A :class:`Callback` pairs an action with a :class:`~.predicates.Guard`; the
action only runs when the guard passes for the record. Actions are coerced
by :func:`as_action`:

- ``"name"``  -> :class:`NamedAction` (action registry, then record method)
- callable    -> :class:`CallableAction`
- :class:`Callback` instances are kept as they are.

State callbacks are invoked with the record only. Event callbacks also
receive the arguments the event was fired with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Protocol, Tuple, runtime_checkable

from ..exceptions import UnknownHandler
from .handlers import HandlerRegistry, action_registry
from .predicates import UNGUARDED, Guard, describe, lookup_handler


class StatePhase(str, Enum):
    BEFORE_ENTER = "before_enter"
    AFTER_ENTER = "after_enter"
    BEFORE_EXIT = "before_exit"
    AFTER_EXIT = "after_exit"


class EventPhase(str, Enum):
    BEFORE = "before"
    AFTER = "after"


STATE_PHASES: Tuple[StatePhase, ...] = tuple(StatePhase)
EVENT_PHASES: Tuple[EventPhase, ...] = tuple(EventPhase)


@runtime_checkable
class Action(Protocol):
    def invoke(self, record: Any, *args: Any, **kwargs: Any) -> Any:
        ...


@dataclass(frozen=True)
class CallableAction:
    fn: Callable[..., Any]

    def invoke(self, record: Any, *args: Any, **kwargs: Any) -> Any:
        return self.fn(record, *args, **kwargs)

    def describe(self) -> str:
        return getattr(self.fn, "__name__", repr(self.fn))


@dataclass(frozen=True)
class NamedAction:
    """Action referenced by name: registered action first, then a record method."""

    name: str
    registry: Optional[HandlerRegistry] = field(default=None, compare=False)

    def invoke(self, record: Any, *args: Any, **kwargs: Any) -> Any:
        handler = lookup_handler(self.registry or action_registry, self.name, type(record))
        if handler is not None:
            return handler(record, *args, **kwargs)
        method = getattr(record, self.name, None)
        if not callable(method):
            raise UnknownHandler(
                f"Couldn't resolve action {self.name!r} for {type(record).__name__}",
                context={"action": self.name, "owner": type(record).__name__},
            )
        return method(*args, **kwargs)

    def describe(self) -> str:
        return self.name


def as_action(value: Any) -> Action:
    if isinstance(value, str):
        return NamedAction(value)
    if isinstance(value, Action):
        return value
    if callable(value):
        return CallableAction(value)
    raise TypeError(f"Cannot use {type(value).__name__} as a callback action")


@dataclass(frozen=True)
class Callback:
    action: Action
    guard: Guard = UNGUARDED

    @classmethod
    def build(cls, action: Any, *, if_: Any = None, unless: Any = None) -> "Callback":
        if isinstance(action, Callback):
            if if_ is None and unless is None:
                return action
            action = action.action
        return cls(action=as_action(action), guard=Guard.build(if_, unless))

    def applies_to(self, record: Any) -> bool:
        return self.guard.evaluate(record)

    def run(self, record: Any, args: Tuple[Any, ...] = (), kwargs: Optional[Mapping[str, Any]] = None) -> bool:
        """Invoke the action if the guard passes. Returns whether it ran."""
        if not self.guard.evaluate(record):
            return False
        self.action.invoke(record, *args, **dict(kwargs or {}))
        return True

    def describe(self) -> str:
        label = describe(self.action)  # type: ignore[arg-type]
        if self.guard.is_unconditional:
            return label
        return f"{label} ({self.guard.describe()})"


def as_callbacks(value: Any) -> Tuple[Callback, ...]:
    """Coerce a single callback spec or a list of them into a tuple of Callbacks."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(Callback.build(v) for v in value)
    return (Callback.build(value),)


def phase_callbacks(phases: Iterable[Enum], given: Mapping[str, Any]) -> Dict[str, Tuple[Callback, ...]]:
    """Validate phase keyword arguments and coerce their values.

    Raises:
        TypeError: For a key that is not one of ``phases``
    """
    allowed = {p.value for p in phases}
    unknown = sorted(set(given) - allowed)
    if unknown:
        raise TypeError(f"Unknown callback phase(s): {', '.join(unknown)}")
    return {key: as_callbacks(value) for key, value in given.items() if value is not None}


__all__ = [
    "StatePhase",
    "EventPhase",
    "STATE_PHASES",
    "EVENT_PHASES",
    "Action",
    "CallableAction",
    "NamedAction",
    "as_action",
    "Callback",
    "as_callbacks",
    "phase_callbacks",
]
