"""Audit JSONL stream and stdlib logging routing."""
from __future__ import annotations

import logging

import pytest

from hasstates.core.audit import audit_event, configure_from_config, configure_stdlib_logging, read_jsonl
from hasstates.core.exceptions import ConcurrentTransitionConflict
from hasstates.core.state import StateEngine

from helpers.machines import define_vehicle_machine, failing
from helpers.records import Vehicle, copy_of


@pytest.fixture
def audit_log(tmp_path, monkeypatch):
    monkeypatch.setenv("HASSTATES_LOGGING__ENABLED", "true")
    return tmp_path / ".hasstates" / "logs" / "audit.jsonl"


def _events(path) -> list[str]:
    return [e["event"] for e in read_jsonl(path)]


def test_disabled_by_default(tmp_path, registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    engine.fire(Vehicle(state="parked"), "ignite")

    assert not (tmp_path / ".hasstates").exists()


def test_applied_transition_is_audited(audit_log, registry, engine: StateEngine, store) -> None:
    define_vehicle_machine(registry)
    car = store.insert(Vehicle(state="parked"))

    engine.fire(car, "ignite")

    [entry] = read_jsonl(audit_log)
    assert entry["event"] == "transition.applied"
    assert {k: entry[k] for k in ("owner", "record_id", "event_name", "from_state", "to_state")} == {
        "owner": "Vehicle",
        "record_id": car.id,
        "event_name": "ignite",
        "from_state": "parked",
        "to_state": "idling",
    }
    assert entry["ts"].endswith("Z")


def test_no_match_and_rollback_are_audited(audit_log, registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    registry.add_state_callbacks(Vehicle, "idling", before_enter=failing(KeyError("x")))

    engine.fire(Vehicle(state="parked", seatbelt_on=False), "ignite")
    with pytest.raises(KeyError):
        engine.fire(Vehicle(state="parked"), "ignite")

    no_match, rolled_back = read_jsonl(audit_log)
    assert (no_match["event"], no_match["from_state"]) == ("transition.no_match", "parked")
    assert (rolled_back["event"], rolled_back["error"]) == ("transition.rolled_back", "KeyError")


def test_conflict_is_audited(audit_log, registry, engine: StateEngine, store) -> None:
    define_vehicle_machine(registry)
    car = store.insert(Vehicle(state="idling"))
    stale = copy_of(car)
    engine.fire(car, "shift_up")

    with pytest.raises(ConcurrentTransitionConflict):
        engine.fire(stale, "park")

    conflict = read_jsonl(audit_log)[-1]
    assert conflict["event"] == "transition.conflict"
    assert (conflict["from_state"], conflict["actual"]) == ("idling", "first_gear")


def test_initial_state_is_audited(audit_log, registry, engine: StateEngine) -> None:
    define_vehicle_machine(registry)
    engine.create(Vehicle())

    assert _events(audit_log) == ["state.initialized"]


def test_audit_can_be_switched_off_separately(audit_log, monkeypatch) -> None:
    monkeypatch.setenv("HASSTATES_LOGGING__AUDIT__ENABLED", "false")

    audit_event("transition.applied", owner="Vehicle")

    assert not audit_log.exists()


def test_custom_audit_path_and_unserializable_fields(tmp_path, audit_log, monkeypatch) -> None:
    target = tmp_path / "elsewhere" / "audit.jsonl"
    monkeypatch.setenv("HASSTATES_LOGGING__AUDIT__JSONL__PATH", str(target))

    audit_event("custom", owner=Vehicle, states=("parked", "idling"))

    [entry] = read_jsonl(target)
    assert entry["states"] == ["parked", "idling"]
    assert "Vehicle" in entry["owner"]


class TestStdlibLogging:
    def test_configure_writes_to_file(self, tmp_path) -> None:
        log_path = tmp_path / "logs" / "hasstates.log"
        configure_stdlib_logging(log_path=log_path, level="DEBUG")
        configure_stdlib_logging(log_path=log_path, level="DEBUG")

        logging.getLogger("hasstates.core.state").debug("transition %s", "ignite")
        for handler in logging.getLogger("hasstates").handlers:
            handler.flush()

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert "DEBUG hasstates.core.state: transition ignite" in lines[0]

    def test_configure_from_config(self, tmp_path, monkeypatch) -> None:
        assert configure_from_config() is False

        monkeypatch.setenv("HASSTATES_LOGGING__ENABLED", "true")
        monkeypatch.setenv("HASSTATES_LOGGING__STDLIB__ENABLED", "true")
        assert configure_from_config() is True

        logging.getLogger("hasstates").info("hello")
        assert "hello" in (tmp_path / ".hasstates" / "logs" / "hasstates.log").read_text(encoding="utf-8")


def test_engine_loads_audit_config_once(audit_log, registry, engine: StateEngine, monkeypatch) -> None:
    import hasstates.core.state.executor as executor_module

    loaded = []

    class CountingConfig(executor_module.LoggingConfig):
        def __init__(self, *args, **kwargs):
            loaded.append(1)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(executor_module, "LoggingConfig", CountingConfig)
    define_vehicle_machine(registry)
    car = Vehicle(state="parked")

    engine.fire(car, "ignite")
    engine.fire(car, "shift_up")
    engine.fire(car, "repair")

    assert len(loaded) == 1
    assert _events(audit_log) == ["transition.applied", "transition.applied", "transition.no_match"]


def test_explicit_config_skips_loading(tmp_path) -> None:
    from hasstates.core.config import LoggingConfig

    config = LoggingConfig(config={"logging": {"enabled": True, "audit": {"jsonl": {"path": "custom.jsonl"}}}})

    audit_event("transition.applied", config=config, owner="Vehicle")

    assert _events(tmp_path / "custom.jsonl") == ["transition.applied"]
