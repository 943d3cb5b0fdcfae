"""Registry of state machines, keyed by owner type.

Machines are defined once, while the host sets up its types, and read
concurrently afterwards. Mutations are serialised by a lock; reads are not
synchronised. :meth:`StateMachineRegistry.freeze` marks the end of the
definition phase.

    registry = StateMachineRegistry()
    (registry.machine(Car, initial="parked",
                      catalog=Catalog.of(["parked", "idling"], ["ignite"]))
        .state("parked", "idling")
        .event("ignite").transition_to("idling", from_="parked"))
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Union

from ..config.domains import EngineConfig
from ..exceptions import (
    EventAlreadyActive,
    EventNotFound,
    MachineAlreadyDefined,
    MachineNotDefined,
    NoInitialState,
    RegistryFrozen,
    StateAlreadyActive,
    StateNotFound,
)
from .callbacks import EVENT_PHASES, STATE_PHASES, as_callbacks, phase_callbacks
from .machine import InitialState, MachineDefinition
from .model import Catalog, Event, State, Transition
from .predicates import Guard

logger = logging.getLogger(__name__)

CatalogLike = Union[Catalog, Mapping[str, Iterable[str]]]


def _as_catalog(value: Optional[CatalogLike]) -> Optional[Catalog]:
    if value is None or isinstance(value, Catalog):
        return value
    return Catalog.of(value.get("states"), value.get("events"))


def _as_names(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


class StateMachineRegistry:
    """Owner type -> :class:`MachineDefinition`."""

    def __init__(self, config: Optional[EngineConfig] = None, *, repo_root: Optional[Path] = None) -> None:
        self._config = config
        self._repo_root = repo_root
        self._machines: Dict[type, MachineDefinition] = {}
        self._lock = threading.RLock()
        self._frozen = False

    @property
    def config(self) -> EngineConfig:
        if self._config is None:
            self._config = EngineConfig(repo_root=self._repo_root)
        return self._config

    # ---------- lifecycle ----------
    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject any further definition changes."""
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozen("State machine registry is frozen")

    # ---------- lookups ----------
    def machine_for(self, owner: type) -> MachineDefinition:
        try:
            return self._machines[owner]
        except KeyError:
            raise MachineNotDefined(
                f"{owner.__name__} has no state machine",
                context={"owner": owner.__name__},
            ) from None

    def has_machine(self, owner: type) -> bool:
        return owner in self._machines

    def owners(self) -> list[type]:
        return list(self._machines)

    def __iter__(self) -> Iterator[MachineDefinition]:
        return iter(list(self._machines.values()))

    def __len__(self) -> int:
        return len(self._machines)

    def is_active_state(self, owner: type, name: Any) -> bool:
        return owner in self._machines and self._machines[owner].has_state(name)

    def is_active_event(self, owner: type, name: Any) -> bool:
        return owner in self._machines and self._machines[owner].has_event(name)

    def state_attribute_for(self, owner: type) -> str:
        """Name of the record attribute holding the state for ``owner``."""
        machine = self._machines.get(owner)
        if machine is None:
            return self.config.state_attribute
        return machine.state_attribute

    # ---------- definition ----------
    def define_machine(
        self,
        owner: type,
        *,
        initial: InitialState,
        catalog: CatalogLike,
        record_changes: Optional[bool] = None,
        state_attribute: Optional[str] = None,
        method_callbacks: Optional[bool] = None,
    ) -> MachineDefinition:
        """Create the machine for ``owner``.

        Options left as None take their value from the ``engine`` config.

        Raises:
            NoInitialState: ``initial`` is missing or empty
            MachineAlreadyDefined: ``owner`` already has a machine
        """
        if not initial:
            raise NoInitialState(
                f"No initial state specified for {owner.__name__}",
                context={"owner": owner.__name__},
            )
        with self._lock:
            self._check_mutable()
            if owner in self._machines:
                raise MachineAlreadyDefined(
                    f"{owner.__name__} already has a state machine",
                    context={"owner": owner.__name__},
                )
            cfg = self.config
            machine = MachineDefinition(
                owner,
                initial=initial,
                catalog=_as_catalog(catalog) or Catalog(),
                record_changes=cfg.record_changes if record_changes is None else bool(record_changes),
                state_attribute=state_attribute or cfg.state_attribute,
                method_callbacks=cfg.method_callbacks if method_callbacks is None else bool(method_callbacks),
            )
            self._machines[owner] = machine
        logger.debug("Defined state machine for %s", owner.__name__)
        return machine

    def define_state(self, owner: type, name: str, **callbacks: Any) -> State:
        """Activate state ``name`` with optional phase callbacks.

        Raises:
            StateNotFound: ``name`` is not in the owner's catalog
            StateAlreadyActive: ``name`` is already active
        """
        given = phase_callbacks(STATE_PHASES, callbacks)
        with self._lock:
            self._check_mutable()
            machine = self.machine_for(owner)
            if machine.has_state(name):
                raise StateAlreadyActive(
                    f"{name!r} is already an active state of {owner.__name__}",
                    context={"owner": owner.__name__, "state": name},
                )
            if not machine.catalog.has_state(name):
                raise StateNotFound(
                    f"Couldn't find state {name!r} for {owner.__name__}",
                    context={"owner": owner.__name__, "state": name},
                )
            state = State(owner, name).with_callbacks(**given)
            machine.states[name] = state
        return state

    def define_event(self, owner: type, name: str, *, before: Any = None, after: Any = None) -> Event:
        """Activate event ``name`` with optional before/after callbacks.

        Raises:
            EventNotFound: ``name`` is not in the owner's catalog
            EventAlreadyActive: ``name`` is already active
        """
        with self._lock:
            self._check_mutable()
            machine = self.machine_for(owner)
            if machine.has_event(name):
                raise EventAlreadyActive(
                    f"{name!r} is already an active event of {owner.__name__}",
                    context={"owner": owner.__name__, "event": name},
                )
            if not machine.catalog.has_event(name):
                raise EventNotFound(
                    f"Couldn't find event {name!r} for {owner.__name__}",
                    context={"owner": owner.__name__, "event": name},
                )
            event = Event(owner, name).with_callbacks(as_callbacks(before), as_callbacks(after))
            machine.events[name] = event
        return event

    def add_transition(
        self,
        owner: type,
        event: str,
        to: str,
        *,
        from_: Any = None,
        if_: Any = None,
        unless: Any = None,
    ) -> Transition:
        """Append a transition to an active event.

        ``from_`` is a state name, a list of names, or None for "any state".

        Raises:
            EventNotActive: ``event`` is not active
            StateNotActive: ``to`` or a ``from_`` name is not an active state
        """
        with self._lock:
            self._check_mutable()
            machine = self.machine_for(owner)
            current = machine.event(event)
            for name in (to, *_as_names(from_)):
                machine.state(name)
            transition = Transition(
                event=event,
                to_state=to,
                from_states=frozenset(_as_names(from_)),
                guard=Guard.build(if_, unless),
            )
            machine.events[event] = current.with_transition(transition)
        return transition

    def add_state_callbacks(self, owner: type, name: str, **callbacks: Any) -> State:
        """Replace state ``name`` with a copy carrying extra callbacks."""
        given = phase_callbacks(STATE_PHASES, callbacks)
        with self._lock:
            self._check_mutable()
            machine = self.machine_for(owner)
            state = machine.state(name).with_callbacks(**given)
            machine.states[name] = state
        return state

    def add_event_callbacks(self, owner: type, name: str, *, before: Any = None, after: Any = None) -> Event:
        """Replace event ``name`` with a copy carrying extra callbacks."""
        given = phase_callbacks(EVENT_PHASES, {"before": before, "after": after})
        with self._lock:
            self._check_mutable()
            machine = self.machine_for(owner)
            event = machine.event(name).with_callbacks(given.get("before", ()), given.get("after", ()))
            machine.events[name] = event
        return event

    def inherit(
        self,
        parent: type,
        subclass: type,
        *,
        catalog: Optional[CatalogLike] = None,
        initial: Optional[InitialState] = None,
    ) -> MachineDefinition:
        """Give ``subclass`` a private copy of ``parent``'s machine.

        The copy's catalog is the parent's extended with ``catalog``. Changes
        made to either machine afterwards stay on that side.
        """
        with self._lock:
            self._check_mutable()
            source = self.machine_for(parent)
            if subclass in self._machines:
                raise MachineAlreadyDefined(
                    f"{subclass.__name__} already has a state machine",
                    context={"owner": subclass.__name__},
                )
            machine = source.copy_for(subclass, catalog=_as_catalog(catalog))
            if initial:
                machine.initial = initial
            self._machines[subclass] = machine
        logger.debug("%s inherits the state machine of %s", subclass.__name__, parent.__name__)
        return machine

    # ---------- fluent API ----------
    def machine(
        self,
        owner: type,
        *,
        initial: Optional[InitialState] = None,
        catalog: Optional[CatalogLike] = None,
        **options: Any,
    ) -> "MachineBuilder":
        """Builder for ``owner``'s machine, defining it first when needed."""
        if owner not in self._machines:
            self.define_machine(owner, initial=initial, catalog=catalog or Catalog(), **options)  # type: ignore[arg-type]
        return MachineBuilder(self, owner)


class MachineBuilder:
    """Fluent wrapper over the registry for one owner type."""

    def __init__(self, registry: StateMachineRegistry, owner: type) -> None:
        self.registry = registry
        self.owner = owner

    @property
    def definition(self) -> MachineDefinition:
        return self.registry.machine_for(self.owner)

    def state(self, *names: str, **callbacks: Any) -> "MachineBuilder":
        """Activate each of ``names`` with the same callbacks."""
        for name in names:
            self.registry.define_state(self.owner, name, **callbacks)
        return self

    def extend_state(self, name: str, **callbacks: Any) -> "MachineBuilder":
        self.registry.add_state_callbacks(self.owner, name, **callbacks)
        return self

    def event(self, name: str, *, before: Any = None, after: Any = None) -> "EventBuilder":
        self.registry.define_event(self.owner, name, before=before, after=after)
        return EventBuilder(self, name)

    def extend_event(self, name: str, *, before: Any = None, after: Any = None) -> "EventBuilder":
        """Builder for an already active event, optionally adding callbacks."""
        if before is not None or after is not None:
            self.registry.add_event_callbacks(self.owner, name, before=before, after=after)
        else:
            self.definition.event(name)
        return EventBuilder(self, name)


class EventBuilder:
    """Adds transitions to one event; chains back to the machine builder."""

    def __init__(self, machine: MachineBuilder, name: str) -> None:
        self.machine = machine
        self.name = name

    def transition_to(self, to: str, *, from_: Any = None, if_: Any = None, unless: Any = None) -> "EventBuilder":
        self.machine.registry.add_transition(
            self.machine.owner, self.name, to, from_=from_, if_=if_, unless=unless
        )
        return self

    def state(self, *names: str, **callbacks: Any) -> MachineBuilder:
        return self.machine.state(*names, **callbacks)

    def event(self, name: str, *, before: Any = None, after: Any = None) -> "EventBuilder":
        return self.machine.event(name, before=before, after=after)

    @property
    def definition(self) -> Event:
        return self.machine.definition.event(self.name)


__all__ = [
    "StateMachineRegistry",
    "MachineBuilder",
    "EventBuilder",
]
