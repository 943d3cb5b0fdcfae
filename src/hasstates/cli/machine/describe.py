"""
hasstates machine describe command.

SUMMARY: Show states, events and transitions of machine definitions
"""
from __future__ import annotations

import argparse
import sys
from typing import Any, Dict

from hasstates.cli import (
    OutputFormatter,
    add_json_flag,
    add_machine_file_arg,
    add_repo_root_flag,
    get_repo_root,
)
from hasstates.core.config import EngineConfig
from hasstates.core.exceptions import HasStatesError, MachineNotDefined
from hasstates.core.state import StateMachineRegistry, load_machines

SUMMARY = "Show states, events and transitions of machine definitions"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_machine_file_arg(parser)
    parser.add_argument(
        "--machine",
        help="Only describe this machine",
    )
    add_json_flag(parser)
    add_repo_root_flag(parser)


def _print_machine(formatter: OutputFormatter, info: Dict[str, Any]) -> None:
    header = f"{info['owner']} (initial: {info['initial']})"
    if info.get("extends"):
        header += f" extends {info['extends']}"
    formatter.text(header)
    formatter.text_kv("states", ", ".join(info["states"]) or "-")
    formatter.text("  events:")
    for name, event in info["events"].items():
        transitions = "; ".join(event["transitions"]) or "no transitions"
        formatter.text(f"    {name}: {transitions}")


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        registry = StateMachineRegistry(EngineConfig(repo_root=get_repo_root(args)))
        machines = load_machines(args.file, registry)
        if args.machine:
            if args.machine not in machines:
                raise MachineNotDefined(
                    f"No machine named {args.machine!r} in {args.file}",
                    context={"machine": args.machine},
                )
            machines = {args.machine: machines[args.machine]}
    except HasStatesError as e:
        formatter.error(e, error_code="describe_error")
        return 1

    described = {name: machine.describe() for name, machine in machines.items()}
    if formatter.json_mode:
        formatter.json_output({"machines": described})
        return 0

    for index, info in enumerate(described.values()):
        if index:
            formatter.text("")
        _print_machine(formatter, info)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
