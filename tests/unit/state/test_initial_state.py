"""Initial-state bootstrap."""
from __future__ import annotations

import pytest

from hasstates.core.exceptions import StateNotActive
from hasstates.core.state import StateEngine

from helpers.machines import define_vehicle_machine, failing, tracer
from helpers.records import Vehicle


@pytest.mark.parametrize("unset", [None, "", 0])
def test_assign_initial_state_fills_unset_slot(registry, engine: StateEngine, unset) -> None:
    define_vehicle_machine(registry)
    car = Vehicle(state=unset)

    assert engine.assign_initial_state(car) == "parked"
    assert car.state == "parked"


def test_assign_initial_state_keeps_existing_state(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    car = Vehicle(state="idling")

    assert engine.assign_initial_state(car) == "idling"
    assert car.state == "idling"


def test_dynamic_initial_state(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry, initial=lambda car: "idling" if car.warm else "parked")
    warm, cold = Vehicle(warm=True), Vehicle(warm=False)

    assert engine.initial_state_name(warm) == "idling"
    assert engine.assign_initial_state(cold) == "parked"


def test_initial_state_must_be_active(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry, initial="launch_pad")
    with pytest.raises(StateNotActive):
        engine.assign_initial_state(Vehicle())


def test_create_enters_initial_state_once(registry, engine: StateEngine, store, calls) -> None:
    define_vehicle_machine(registry)
    registry.add_state_callbacks(Vehicle, "parked", after_enter=tracer(calls, "after_enter"), before_enter=tracer(calls, "before_enter"))
    car = Vehicle()

    engine.create(car)

    assert car.id is not None
    assert store.persisted_state(car) == "parked"
    assert calls == ["after_enter"]
    [change] = store.history_of(car)
    assert (change.from_state, change.to_state, change.event) == (None, "parked", None)
    assert change.is_initial

    assert engine.run_initial_state_actions(car) is False
    assert calls == ["after_enter"]
    assert len(store.history_of(car)) == 1


def test_initial_actions_use_convention_method(registry, engine: StateEngine, calls) -> None:
    class Tracked(Vehicle):
        def after_enter_parked(self):
            calls.append("method")

    define_vehicle_machine(registry, Tracked)
    engine.create(Tracked())

    assert calls == ["method"]


def test_create_rolls_back_on_failure(registry, engine: StateEngine, store) -> None:
    define_vehicle_machine(registry)
    registry.add_state_callbacks(Vehicle, "parked", after_enter=failing(RuntimeError("no")))
    car = Vehicle(id=7)

    with pytest.raises(RuntimeError):
        engine.create(car)

    assert not store.is_persisted(car)
    assert not store.has_state_changes(car)
    assert car.state is None


def test_run_initial_actions_without_recording(registry, engine: StateEngine, store, calls) -> None:
    define_vehicle_machine(registry, record_changes=False)
    registry.add_state_callbacks(Vehicle, "parked", after_enter=tracer(calls, "after_enter"))
    car = store.insert(Vehicle(state="parked"))

    assert engine.run_initial_state_actions(car) is True
    assert calls == ["after_enter"]
    assert store.history_of(car) == []

    # Nothing marks the first run when changes are not recorded.
    assert engine.run_initial_state_actions(car) is True
    assert calls == ["after_enter", "after_enter"]


def test_current_state_of_persisted_record_is_not_defaulted(registry, engine: StateEngine, store) -> None:
    define_vehicle_machine(registry)
    car = store.insert(Vehicle())

    assert engine.current_state_name(car) is None
    with pytest.raises(StateNotActive):
        engine.fire(car, "ignite")
