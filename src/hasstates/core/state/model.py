"""Immutable definitions: catalog, states, transitions and events.

All of these are frozen; "changing" one produces a copy. Subclass machines
hold copies rebound to the subclass, so extending an inherited definition
never touches the parent's.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

from .callbacks import EventPhase, StatePhase
from .callbacks import Callback
from .predicates import UNGUARDED, Guard


def _names(values: Iterable[str] | str | None) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(str(v), None)
    return tuple(seen)


@dataclass(frozen=True)
class Catalog:
    """Pre-declared vocabulary of state and event names for an owner type.

    Definitions must name an entry of the catalog, so a typo cannot create
    a silently dead state or event.
    """

    states: Tuple[str, ...] = ()
    events: Tuple[str, ...] = ()

    @classmethod
    def of(cls, states: Iterable[str] | str | None = None, events: Iterable[str] | str | None = None) -> "Catalog":
        return cls(states=_names(states), events=_names(events))

    def has_state(self, name: str) -> bool:
        return name in self.states

    def has_event(self, name: str) -> bool:
        return name in self.events

    def extend(self, other: Optional["Catalog"]) -> "Catalog":
        if other is None:
            return self
        return Catalog(
            states=_names([*self.states, *other.states]),
            events=_names([*self.events, *other.events]),
        )


def _freeze(callbacks: Mapping[str, Tuple[Callback, ...]]) -> Mapping[str, Tuple[Callback, ...]]:
    return MappingProxyType({k: tuple(v) for k, v in callbacks.items() if v})


@dataclass(frozen=True)
class State:
    """A named node of an owner type's machine with enter/exit callbacks."""

    owner: type
    name: str
    callbacks: Mapping[str, Tuple[Callback, ...]] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    def callbacks_for(self, phase: StatePhase | str) -> Tuple[Callback, ...]:
        key = phase.value if isinstance(phase, StatePhase) else str(phase)
        return self.callbacks.get(key, ())

    def with_callbacks(self, **phases: Tuple[Callback, ...]) -> "State":
        """Copy with ``phases`` callbacks appended after the existing ones."""
        merged = dict(self.callbacks)
        for key, extra in phases.items():
            merged[key] = (*merged.get(key, ()), *extra)
        return replace(self, callbacks=_freeze(merged))

    def rebind(self, owner: type) -> "State":
        return replace(self, owner=owner, callbacks=_freeze(self.callbacks))

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Transition:
    """Edge of an event: ``from_states`` (empty = any) -> ``to_state`` when ``guard`` passes."""

    event: str
    to_state: str
    from_states: FrozenSet[str] = frozenset()
    guard: Guard = UNGUARDED

    def applies_from(self, state_name: str) -> bool:
        return not self.from_states or state_name in self.from_states

    def allowed_for(self, record: Any) -> bool:
        return self.guard.evaluate(record)

    def describe(self) -> str:
        origin = ", ".join(sorted(self.from_states)) if self.from_states else "*"
        text = f"{origin} -> {self.to_state}"
        if not self.guard.is_unconditional:
            text += f" [{self.guard.describe()}]"
        return text


@dataclass(frozen=True)
class Event:
    """Named, ordered collection of transitions with before/after callbacks.

    Transition order is definition order and decides which transition fires
    when several could: the first eligible one whose guard passes wins.
    """

    owner: type
    name: str
    transitions: Tuple[Transition, ...] = ()
    before: Tuple[Callback, ...] = field(default=(), compare=False, repr=False)
    after: Tuple[Callback, ...] = field(default=(), compare=False, repr=False)

    def callbacks_for(self, phase: EventPhase | str) -> Tuple[Callback, ...]:
        key = phase.value if isinstance(phase, EventPhase) else str(phase)
        return self.before if key == EventPhase.BEFORE.value else self.after

    def with_transition(self, transition: Transition) -> "Event":
        return replace(self, transitions=(*self.transitions, transition))

    def with_callbacks(
        self,
        before: Tuple[Callback, ...] = (),
        after: Tuple[Callback, ...] = (),
    ) -> "Event":
        return replace(self, before=(*self.before, *before), after=(*self.after, *after))

    def rebind(self, owner: type) -> "Event":
        return replace(self, owner=owner)

    def _eligible(self, state_name: str) -> Iterator[Transition]:
        return (t for t in self.transitions if t.applies_from(state_name))

    def select(self, record: Any, state_name: str) -> Optional[Transition]:
        """First eligible transition whose guard passes, or None.

        Guards are evaluated lazily in definition order and only for
        transitions eligible from ``state_name``.
        """
        for transition in self._eligible(state_name):
            if transition.allowed_for(record):
                return transition
        return None

    def possible_transitions_from(self, record: Any, state_name: str) -> list[Transition]:
        """Every eligible transition whose guard passes, in definition order."""
        return [t for t in self._eligible(state_name) if t.allowed_for(record)]


__all__ = ["Catalog", "State", "Transition", "Event"]
