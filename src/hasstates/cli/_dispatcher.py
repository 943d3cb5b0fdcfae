"""
Command discovery and dispatch for the ``hasstates`` executable.

Each subfolder of ``hasstates.cli`` is a command group and each public
module in it a command: ``cli/machine/validate.py`` is
``hasstates machine validate``. Command modules provide ``SUMMARY``,
``register_args(parser)`` and ``main(args) -> int``.
"""
from __future__ import annotations

import argparse
import importlib
import logging
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import ModuleType
from typing import Callable, Optional

logger = logging.getLogger(__name__)

CLI_DIR = Path(__file__).parent


@dataclass(frozen=True)
class Command:
    group: str
    name: str
    module: ModuleType

    @property
    def summary(self) -> str:
        return getattr(self.module, "SUMMARY", f"{self.group} {self.name}")

    @property
    def register_args(self) -> Optional[Callable[[argparse.ArgumentParser], None]]:
        return getattr(self.module, "register_args", None)

    @property
    def main(self) -> Optional[Callable[[argparse.Namespace], int]]:
        return getattr(self.module, "main", None)


def _public_modules(directory: Path) -> list[str]:
    return sorted(p.stem for p in directory.glob("*.py") if not p.name.startswith("_"))


@lru_cache(maxsize=1)
def discover_domains() -> dict[str, Path]:
    """Command groups: public subfolders holding at least one command module."""
    return {
        item.name: item
        for item in sorted(CLI_DIR.iterdir())
        if item.is_dir() and not item.name.startswith("_") and _public_modules(item)
    }


@lru_cache(maxsize=32)
def discover_commands(domain: str) -> dict[str, Command]:
    """Import the command modules of ``domain``; broken modules are skipped with a warning."""
    commands: dict[str, Command] = {}
    for name in _public_modules(CLI_DIR / domain):
        try:
            module = importlib.import_module(f"hasstates.cli.{domain}.{name}")
        except ImportError as e:
            print(f"Warning: Could not import {domain}.{name}: {e}", file=sys.stderr)
            continue
        commands[name] = Command(domain, name, module)
    return commands


def build_parser() -> argparse.ArgumentParser:
    from hasstates import __version__

    parser = argparse.ArgumentParser(
        prog="hasstates",
        description="hasstates - state machines for stateful records",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    groups = parser.add_subparsers(dest="domain", metavar="<domain>")

    for domain in discover_domains():
        commands = discover_commands(domain)
        if not commands:
            continue
        group = groups.add_parser(domain, help=f"{domain.title()} commands")
        group.set_defaults(_help=group.print_help)
        sub = group.add_subparsers(dest="command", metavar="<command>")
        for name, command in commands.items():
            cmd_parser = sub.add_parser(name.replace("_", "-"), help=command.summary)
            if command.register_args:
                command.register_args(cmd_parser)
            if command.main:
                cmd_parser.set_defaults(_func=command.main)

    parser.set_defaults(_help=parser.print_help)
    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    from hasstates.cli._utils import get_repo_root
    from hasstates.core.audit import configure_from_config

    try:
        configure_from_config(get_repo_root(args))
    except (OSError, ValueError) as e:
        logger.debug("stdlib logging not configured: %s", e)


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``hasstates`` script. Returns the process exit code."""
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    func = getattr(args, "_func", None)
    if func is None:
        args._help()
        return 0

    _configure_logging(args)
    return int(func(args) or 0)


if __name__ == "__main__":
    sys.exit(main())
