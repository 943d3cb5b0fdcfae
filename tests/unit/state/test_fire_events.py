"""Transition selection and event firing."""
from __future__ import annotations

import pytest

from hasstates.core.exceptions import EventNotActive, MachineNotDefined, StateNotActive
from hasstates.core.state import FireStatus, StateEngine, StateMachineRegistry

from helpers.machines import define_vehicle_machine, tracer, vehicle_catalog
from helpers.records import Car, Vehicle


def test_fire_applies_matching_transition(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    car = Vehicle(id=1, state="parked")

    outcome = engine.fire(car, "ignite")

    assert outcome.status is FireStatus.APPLIED
    assert (outcome.from_state, outcome.to_state) == ("parked", "idling")
    assert outcome
    assert car.state == "idling"


def test_first_eligible_transition_wins(registry: StateMachineRegistry, engine: StateEngine) -> None:
    registry.machine(Vehicle, initial="parked", catalog=vehicle_catalog()).state(
        "parked", "idling", "first_gear", "stalled"
    ).event("ignite").transition_to("idling", from_="parked").transition_to("first_gear", from_="parked")
    car = Vehicle(state="parked")

    assert engine.fire(car, "ignite").to_state == "idling"


def test_failing_guard_falls_through_to_next_transition(registry, engine: StateEngine) -> None:
    registry.machine(Vehicle, initial="parked", catalog=vehicle_catalog()).state(
        "parked", "idling", "stalled"
    ).event("ignite").transition_to("idling", if_="seatbelt_on").transition_to("stalled")
    car = Vehicle(state="parked", seatbelt_on=False)

    assert engine.fire(car, "ignite").to_state == "stalled"


def test_guards_are_only_evaluated_until_a_match(registry, engine: StateEngine) -> None:
    evaluated = []

    def guard(label, result):
        def _guard(record):
            evaluated.append(label)
            return result

        return _guard

    registry.machine(Vehicle, initial="parked", catalog=vehicle_catalog()).state(
        "parked", "idling", "first_gear", "stalled"
    ).event("ignite").transition_to("stalled", from_="idling", if_=guard("ineligible", True)).transition_to(
        "idling", if_=guard("first", False)
    ).transition_to("first_gear", if_=guard("second", True)).transition_to("stalled", if_=guard("third", True))

    engine.fire(Vehicle(state="parked"), "ignite")

    assert evaluated == ["first", "second"]


def test_no_match_is_a_no_op(registry, engine: StateEngine, store, calls) -> None:
    define_vehicle_machine(registry)
    registry.add_state_callbacks(Vehicle, "parked", before_exit=tracer(calls, "before_exit"))
    registry.add_event_callbacks(Vehicle, "shift_up", before=tracer(calls, "before"), after=tracer(calls, "after"))
    car = store.insert(Vehicle(state="parked"))

    outcome = engine.fire(car, "shift_up")

    assert outcome.status is FireStatus.NO_MATCH
    assert outcome.is_no_match
    assert not outcome
    assert outcome.from_state == "parked"
    assert car.state == "parked"
    assert store.persisted_state(car) == "parked"
    assert calls == []
    assert store.history_of(car) == []


def test_unless_guard_blocks_transition(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    car = Vehicle(state="first_gear", auto_shop_busy=True)

    assert engine.fire(car, "crash").is_no_match
    car.auto_shop_busy = False
    assert engine.fire(car, "crash").to_state == "stalled"


def test_unknown_event_raises(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    with pytest.raises(EventNotActive):
        engine.fire(Vehicle(state="parked"), "fly")


def test_inactive_current_state_raises(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    with pytest.raises(StateNotActive):
        engine.fire(Vehicle(state="flying"), "park")


def test_machine_lookup_uses_exact_type(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry, Vehicle)
    with pytest.raises(MachineNotDefined):
        engine.fire(Car(state="parked"), "ignite")


def test_event_arguments_reach_event_callbacks_only(registry, engine: StateEngine, calls) -> None:
    define_vehicle_machine(registry)
    registry.add_event_callbacks(
        Vehicle,
        "ignite",
        before=tracer(calls, "before", with_args=True),
        after=tracer(calls, "after", with_args=True),
    )
    registry.add_state_callbacks(Vehicle, "idling", after_enter=tracer(calls, "after_enter", with_args=True))

    engine.fire(Vehicle(state="parked"), "ignite", "key", force=True)

    assert calls == [
        ("before", ("key",), {"force": True}),
        ("after_enter", (), {}),
        ("after", ("key",), {"force": True}),
    ]


def test_unset_state_of_new_record_reads_as_initial(registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    car = Vehicle()

    assert engine.current_state_name(car) == "parked"
    assert engine.fire(car, "ignite").from_state == "parked"
    assert car.state == "idling"


def test_custom_state_attribute(registry, engine: StateEngine) -> None:
    from helpers.records import Switch

    registry.machine(
        Switch, initial="off", catalog={"states": ["off", "on"], "events": ["toggle"]}, state_attribute="status"
    ).state("off", "on").event("toggle").transition_to("on", from_="off").transition_to("off", from_="on")
    switch = Switch(status="off")

    engine.fire(switch, "toggle")

    assert switch.status == "on"
    assert not hasattr(switch, "state")


class TestIntrospection:
    def test_possible_transitions(self, registry, engine: StateEngine) -> None:
        define_vehicle_machine(registry)
        car = Vehicle(state="idling")

        [transition] = engine.possible_transitions(car, "park")
        assert transition.to_state == "parked"
        assert engine.possible_transitions(car, "repair") == []

    def test_event_possible_transitions_from_any_state(self, registry) -> None:
        machine = define_vehicle_machine(registry)
        park = machine.event("park")
        car = Vehicle(state="parked")

        assert [t.to_state for t in park.possible_transitions_from(car, "first_gear")] == ["parked"]
        assert park.possible_transitions_from(car, "stalled") == []

    def test_next_state_respects_guards(self, registry, engine: StateEngine) -> None:
        define_vehicle_machine(registry)
        car = Vehicle(state="parked", seatbelt_on=False)

        assert engine.next_state_for_event(car, "ignite") is None
        car.seatbelt_on = True
        assert engine.next_state_for_event(car, "ignite") == "idling"

    def test_next_states_in_definition_order(self, registry, engine: StateEngine) -> None:
        registry.machine(Vehicle, initial="parked", catalog=vehicle_catalog()).state(
            "parked", "idling", "first_gear"
        ).event("ignite").transition_to("first_gear", from_="parked").transition_to("idling").transition_to(
            "first_gear"
        )
        car = Vehicle(state="parked")

        assert engine.next_states_for_event(car, "ignite") == ["first_gear", "idling"]

    def test_introspection_has_no_side_effects(self, registry, engine: StateEngine, calls) -> None:
        define_vehicle_machine(registry)
        registry.add_event_callbacks(Vehicle, "ignite", before=tracer(calls, "before"))
        car = Vehicle(state="parked")

        engine.possible_transitions(car, "ignite")
        engine.next_state_for_event(car, "ignite")

        assert car.state == "parked"
        assert calls == []

    def test_is_in_state(self, registry, engine: StateEngine) -> None:
        define_vehicle_machine(registry)
        car = Vehicle(state="idling")

        assert engine.is_in_state(car, "idling")
        assert not engine.is_in_state(car, "parked")
        with pytest.raises(StateNotActive):
            engine.is_in_state(car, "flying")

    def test_count_in_state(self, registry, engine: StateEngine, store) -> None:
        define_vehicle_machine(registry)
        define_vehicle_machine(registry, Car)
        for state in ("parked", "parked", "idling", "stalled"):
            store.insert(Vehicle(state=state))
        store.insert(Car(state="parked"))
        Vehicle(state="parked")  # never persisted

        assert engine.count_in_state(Vehicle, "parked") == 2
        assert engine.count_in_state(Vehicle, "parked", "idling") == 3
        assert engine.count_in_state(Car, "parked") == 1
        with pytest.raises(StateNotActive):
            engine.count_in_state(Vehicle, "flying")
