"""`hasstates machine ...` commands."""
from __future__ import annotations

import json

import pytest

from hasstates.cli._dispatcher import build_parser, discover_commands, main

from helpers.io_utils import write_yaml


MACHINES = {
    "machines": {
        "Vehicle": {
            "initial": "parked",
            "states": {"parked": None, "idling": {"after_enter": ["start_engine"]}},
            "events": {
                "ignite": {"before": "check_mirrors", "transitions": [{"to": "idling", "from": "parked", "if": "seatbelt_on"}]},
                "park": {"transitions": [{"to": "parked"}]},
            },
        },
        "Car": {"extends": "Vehicle", "catalog": {"states": ["stalled"]}, "states": {"stalled": None}},
    }
}


@pytest.fixture
def machine_file(tmp_path):
    return write_yaml(tmp_path / "machines.yaml", MACHINES)


def test_commands_are_discovered() -> None:
    assert {"validate", "describe"} <= set(discover_commands("machine"))
    args = build_parser().parse_args(["machine", "validate", "x.yaml", "--json"])
    assert (args.domain, args.command, args.file, args.json) == ("machine", "validate", "x.yaml", True)


def test_no_domain_prints_help(capsys) -> None:
    assert main([]) == 0
    assert "hasstates" in capsys.readouterr().out


def test_validate_ok(machine_file, capsys) -> None:
    assert main(["machine", "validate", str(machine_file)]) == 0
    assert "2 machine(s) valid (Vehicle, Car)" in capsys.readouterr().out


def test_validate_ok_json(machine_file, capsys) -> None:
    assert main(["machine", "validate", str(machine_file), "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == {"status": "success", "file": str(machine_file), "machines": ["Vehicle", "Car"]}


def test_validate_reports_every_error(tmp_path, capsys) -> None:
    bad = write_yaml(tmp_path / "bad.yaml", {"machines": {"Vehicle": {"states": {"parked": {"on_enter": "x"}}}, "Car": {"extends": "Truck"}}})

    assert main(["machine", "validate", str(bad)]) == 1
    out = capsys.readouterr().out
    assert "is invalid" in out
    assert "on_enter" in out


def test_validate_json_error_goes_to_stderr(tmp_path, capsys) -> None:
    assert main(["machine", "validate", str(tmp_path / "missing.yaml"), "--json"]) == 1
    payload = json.loads(capsys.readouterr().err)
    assert payload["error"] == "invalid_machines"
    assert payload["code"] == "MachineSpecError"


def test_describe_json(machine_file, capsys) -> None:
    assert main(["machine", "describe", str(machine_file), "--json"]) == 0
    machines = json.loads(capsys.readouterr().out)["machines"]

    vehicle, car = machines["Vehicle"], machines["Car"]
    assert vehicle["initial"] == "parked"
    assert vehicle["events"]["ignite"] == {
        "before": ["check_mirrors"],
        "after": [],
        "transitions": ["parked -> idling [if seatbelt_on]"],
    }
    assert vehicle["events"]["park"]["transitions"] == ["* -> parked"]
    assert vehicle["states"]["idling"] == {"after_enter": ["start_engine"]}
    assert car["extends"] == "Vehicle"
    assert "stalled" in car["states"]


def test_describe_text_single_machine(machine_file, capsys) -> None:
    assert main(["machine", "describe", str(machine_file), "--machine", "Car"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Car (initial: parked) extends Vehicle")
    assert "ignite: parked -> idling [if seatbelt_on]" in out
    assert "Vehicle (initial" not in out


def test_describe_unknown_machine(machine_file, capsys) -> None:
    assert main(["machine", "describe", str(machine_file), "--machine", "Boat", "--json"]) == 1
    payload = json.loads(capsys.readouterr().err)
    assert payload["code"] == "MachineNotDefined"
    assert payload["context"] == {"machine": "Boat"}
