"""
hasstates machine validate command.

SUMMARY: Validate a machine definition file

Checks the file against the machine schema, then registers every machine in
a scratch registry so catalog and reference errors surface as well.
"""
from __future__ import annotations

import argparse
import sys

from hasstates.cli import (
    OutputFormatter,
    add_json_flag,
    add_machine_file_arg,
    add_repo_root_flag,
    get_repo_root,
)
from hasstates.core.config import EngineConfig
from hasstates.core.exceptions import HasStatesError
from hasstates.core.state import StateMachineRegistry, load_machines

SUMMARY = "Validate a machine definition file"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_machine_file_arg(parser)
    add_json_flag(parser)
    add_repo_root_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        registry = StateMachineRegistry(EngineConfig(repo_root=get_repo_root(args)))
        machines = load_machines(args.file, registry)
    except HasStatesError as e:
        errors = e.context.get("errors") or [str(e)]
        if formatter.json_mode:
            formatter.error(e, error_code="invalid_machines")
        else:
            formatter.text(f"❌ {args.file} is invalid ({len(errors)} error(s)):")
            for msg in errors:
                formatter.text(f"   - {msg}")
        return 1

    formatter.success(
        {"file": str(args.file), "machines": list(machines)},
        f"✅ {args.file}: {len(machines)} machine(s) valid ({', '.join(machines)})",
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
