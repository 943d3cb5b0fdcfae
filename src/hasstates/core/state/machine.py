"""Per-owner machine definition.

A :class:`MachineDefinition` holds everything the engine needs for one owner
type: its catalog, the active states and events, the initial state and the
per-machine switches. Definitions are only mutated through
:class:`~hasstates.core.state.registry.StateMachineRegistry`.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Optional, Union

from ..exceptions import EventNotActive, StateNotActive
from .model import Catalog, Event, State

InitialState = Union[str, Callable[[Any], str]]


class MachineDefinition:
    """States, events and settings of a single owner type."""

    def __init__(
        self,
        owner: type,
        *,
        initial: InitialState,
        catalog: Catalog,
        record_changes: bool = True,
        state_attribute: str = "state",
        method_callbacks: bool = True,
        parent: Optional[type] = None,
    ) -> None:
        self.owner = owner
        self.initial = initial
        self.catalog = catalog
        self.record_changes = record_changes
        self.state_attribute = state_attribute
        self.method_callbacks = method_callbacks
        self.parent = parent
        self.states: Dict[str, State] = {}
        self.events: Dict[str, Event] = {}

    @property
    def name(self) -> str:
        return self.owner.__name__

    # ---------- lookups ----------
    def has_state(self, name: Any) -> bool:
        return isinstance(name, str) and name in self.states

    def has_event(self, name: Any) -> bool:
        return isinstance(name, str) and name in self.events

    def state(self, name: Any) -> State:
        """Active state ``name``.

        Raises:
            StateNotActive: When ``name`` is not an active state of the owner
        """
        if not self.has_state(name):
            raise StateNotActive(
                f"{name!r} is not an active state of {self.name}",
                context={"owner": self.name, "state": name},
            )
        return self.states[name]

    def event(self, name: Any) -> Event:
        if not self.has_event(name):
            raise EventNotActive(
                f"{name!r} is not an active event of {self.name}",
                context={"owner": self.name, "event": name},
            )
        return self.events[name]

    def iter_transitions(self) -> Iterator[Any]:
        for event in self.events.values():
            yield from event.transitions

    def initial_state_for(self, record: Any) -> str:
        """Initial state name for ``record`` (static or computed per record)."""
        if callable(self.initial):
            return str(self.initial(record))
        return self.initial

    # ---------- inheritance ----------
    def copy_for(self, subclass: type, *, catalog: Optional[Catalog] = None) -> "MachineDefinition":
        """Copy with every state and event rebound to ``subclass``."""
        clone = MachineDefinition(
            subclass,
            initial=self.initial,
            catalog=self.catalog.extend(catalog),
            record_changes=self.record_changes,
            state_attribute=self.state_attribute,
            method_callbacks=self.method_callbacks,
            parent=self.owner,
        )
        clone.states = {name: s.rebind(subclass) for name, s in self.states.items()}
        clone.events = {name: e.rebind(subclass) for name, e in self.events.items()}
        return clone

    # ---------- introspection ----------
    def describe(self) -> Dict[str, Any]:
        """JSON-friendly summary used by the CLI."""
        initial = self.initial if isinstance(self.initial, str) else getattr(self.initial, "__name__", "<callable>")
        return {
            "owner": self.name,
            "extends": self.parent.__name__ if self.parent else None,
            "initial": initial,
            "record_changes": self.record_changes,
            "state_attribute": self.state_attribute,
            "catalog": {"states": list(self.catalog.states), "events": list(self.catalog.events)},
            "states": {
                name: {phase: [cb.describe() for cb in cbs] for phase, cbs in state.callbacks.items()}
                for name, state in self.states.items()
            },
            "events": {
                name: {
                    "before": [cb.describe() for cb in event.before],
                    "after": [cb.describe() for cb in event.after],
                    "transitions": [t.describe() for t in event.transitions],
                }
                for name, event in self.events.items()
            },
        }

    def __repr__(self) -> str:
        return f"<MachineDefinition {self.name} states={list(self.states)} events={list(self.events)}>"


__all__ = ["MachineDefinition", "InitialState"]
