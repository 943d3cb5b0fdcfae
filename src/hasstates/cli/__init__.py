"""
hasstates CLI package.

Commands are auto-discovered from subfolders (``machine/``, ...): every
module there exposing ``SUMMARY``, ``register_args`` and ``main`` becomes
``hasstates <folder> <module>``.
"""
from ._output import OutputFormatter
from ._args import add_json_flag, add_machine_file_arg, add_repo_root_flag
from ._utils import get_repo_root

__all__ = [
    "OutputFormatter",
    "add_json_flag",
    "add_machine_file_arg",
    "add_repo_root_flag",
    "get_repo_root",
]
