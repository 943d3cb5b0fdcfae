"""Declarative machine definitions.

Machines can be described in YAML instead of Python:

    machines:
      Vehicle:
        initial: parked
        states:
          parked:
          idling:
            after_enter: [start_engine]
        events:
          ignite:
            transitions:
              - {to: idling, from: parked, if: seatbelt_on}
      Car:
        extends: Vehicle
        catalog: {states: [stalled], events: [stall]}

Callbacks and conditions are names, resolved when they run: first in the
``guards``/``actions`` mappings given to :func:`load_machines`, then in the
global handler registries, then as attributes of the record.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml

from ..exceptions import MachineSpecError
from ..schemas import validate_payload_safe
from ..utils.io import read_yaml
from .callbacks import EVENT_PHASES, STATE_PHASES, Callback, NamedAction
from .handlers import HandlerRegistry, action_registry, guard_registry
from .machine import MachineDefinition
from .model import Catalog
from .predicates import Constant, NamedPredicate
from .registry import StateMachineRegistry

logger = logging.getLogger(__name__)

SCHEMA_NAME = "machine.schema"

Source = Union[str, Path, Mapping[str, Any]]


def read_machines(source: Source) -> Dict[str, Any]:
    """Parse ``source`` (a path or an already-loaded mapping) and validate it.

    Raises:
        MachineSpecError: The document is unreadable or does not match the schema
    """
    if isinstance(source, Mapping):
        data: Any = dict(source)
        origin = "<mapping>"
    else:
        path = Path(source)
        origin = str(path)
        if not path.exists():
            raise MachineSpecError(f"Machine file not found: {path}", context={"path": origin})
        try:
            data = read_yaml(path, raise_on_error=True)
        except (OSError, yaml.YAMLError) as exc:
            raise MachineSpecError(f"Couldn't parse {path}: {exc}", context={"path": origin}) from exc

    errors = validate_machines(data)
    if errors:
        raise MachineSpecError(
            f"Invalid machine definitions in {origin}: {errors[0]}",
            context={"path": origin, "errors": errors},
        )
    return data


def validate_machines(data: Any) -> list[str]:
    """Schema errors for a machines document (empty when valid)."""
    errors = validate_payload_safe(data, SCHEMA_NAME)
    if errors:
        return errors
    machines = data["machines"]
    for name, spec in machines.items():
        parent = (spec or {}).get("extends")
        if parent is not None and parent not in machines:
            errors.append(f"machines.{name}.extends: unknown machine {parent!r}")
        elif parent is None and not (spec or {}).get("initial"):
            errors.append(f"machines.{name}: 'initial' is required")
    return errors


class _Builder:
    def __init__(
        self,
        registry: StateMachineRegistry,
        machines: Mapping[str, Any],
        owners: Mapping[str, type],
        guards: HandlerRegistry,
        actions: HandlerRegistry,
    ) -> None:
        self.registry = registry
        self.machines = machines
        self.owners = dict(owners)
        self.guards = guards
        self.actions = actions
        self.built: Dict[str, MachineDefinition] = {}
        self._building: list[str] = []

    # ---------- coercion ----------
    def condition(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return Constant(value)
        if isinstance(value, str):
            return NamedPredicate(value, self.guards)
        return [self.condition(v) for v in value]

    def callback(self, value: Any) -> Callback:
        if isinstance(value, str):
            return Callback.build(NamedAction(value, self.actions))
        return Callback.build(
            NamedAction(value["do"], self.actions),
            if_=self.condition(value.get("if")),
            unless=self.condition(value.get("unless")),
        )

    def callbacks(self, value: Any) -> list[Callback]:
        if value is None:
            return []
        if isinstance(value, list):
            return [self.callback(v) for v in value]
        return [self.callback(value)]

    # ---------- owners ----------
    def owner_for(self, name: str, parent: Optional[type]) -> type:
        owner = self.owners.get(name)
        if owner is None:
            bases = (parent,) if parent is not None else ()
            owner = type(name, bases, {"__module__": __name__})
            self.owners[name] = owner
        return owner

    # ---------- machines ----------
    def build(self, name: str) -> MachineDefinition:
        if name in self.built:
            return self.built[name]
        if name in self._building:
            cycle = " -> ".join([*self._building, name])
            raise MachineSpecError(f"Circular 'extends': {cycle}", context={"machine": name})
        self._building.append(name)
        try:
            machine = self._build(name, self.machines[name] or {})
        finally:
            self._building.pop()
        self.built[name] = machine
        return machine

    def _build(self, name: str, spec: Mapping[str, Any]) -> MachineDefinition:
        raw_catalog = spec.get("catalog")
        if raw_catalog is not None:
            catalog = Catalog.of(raw_catalog.get("states"), raw_catalog.get("events"))
        else:
            catalog = Catalog.of(list(spec.get("states") or {}), list(spec.get("events") or {}))

        registry = self.registry
        parent_name = spec.get("extends")
        if parent_name:
            parent = self.build(parent_name)
            owner = self.owner_for(name, parent.owner)
            machine = registry.inherit(parent.owner, owner, catalog=catalog, initial=spec.get("initial"))
            for key in ("record_changes", "state_attribute", "method_callbacks"):
                if key in spec:
                    setattr(machine, key, spec[key])
        else:
            owner = self.owner_for(name, None)
            machine = registry.define_machine(
                owner,
                initial=spec.get("initial"),
                catalog=catalog,
                record_changes=spec.get("record_changes"),
                state_attribute=spec.get("state_attribute"),
                method_callbacks=spec.get("method_callbacks"),
            )

        for state_name, phases in (spec.get("states") or {}).items():
            given = {p.value: self.callbacks((phases or {}).get(p.value)) for p in STATE_PHASES}
            given = {k: v for k, v in given.items() if v}
            if machine.has_state(state_name):
                registry.add_state_callbacks(owner, state_name, **given)
            else:
                registry.define_state(owner, state_name, **given)

        for event_name, event_spec in (spec.get("events") or {}).items():
            event_spec = event_spec or {}
            before, after = (self.callbacks(event_spec.get(p.value)) or None for p in EVENT_PHASES)
            if machine.has_event(event_name):
                registry.add_event_callbacks(owner, event_name, before=before, after=after)
            else:
                registry.define_event(owner, event_name, before=before, after=after)
            for transition in event_spec.get("transitions") or []:
                registry.add_transition(
                    owner,
                    event_name,
                    transition["to"],
                    from_=transition.get("from"),
                    if_=self.condition(transition.get("if")),
                    unless=self.condition(transition.get("unless")),
                )

        logger.debug("Loaded machine %s (%d states, %d events)", name, len(machine.states), len(machine.events))
        return machine


def load_machines(
    source: Source,
    registry: StateMachineRegistry,
    owners: Optional[Mapping[str, type]] = None,
    *,
    guards: Optional[Mapping[str, Callable[..., Any]]] = None,
    actions: Optional[Mapping[str, Callable[..., Any]]] = None,
) -> Dict[str, MachineDefinition]:
    """Register every machine of ``source`` in ``registry``.

    Args:
        source: YAML file path or mapping with a top-level ``machines`` key
        registry: Registry receiving the machines
        owners: Owner type per machine name. Machines without one get a
            plain class named after them (subclassing the ``extends`` owner).
        guards: Extra guards by name, taking precedence over global ones
        actions: Extra actions by name, taking precedence over global ones

    Returns:
        Machine definitions by machine name, in document order.

    Raises:
        MachineSpecError: Malformed document or circular ``extends``
    """
    data = read_machines(source)
    guard_layer: HandlerRegistry = HandlerRegistry("guard", parent=guard_registry)
    action_layer: HandlerRegistry = HandlerRegistry("action", parent=action_registry)
    for name, fn in (guards or {}).items():
        guard_layer.register(name, fn)
    for name, fn in (actions or {}).items():
        action_layer.register(name, fn)

    builder = _Builder(registry, data["machines"], owners or {}, guard_layer, action_layer)
    return {name: builder.build(name) for name in data["machines"]}


__all__ = ["load_machines", "read_machines", "validate_machines", "SCHEMA_NAME"]
