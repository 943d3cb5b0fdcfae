"""Structured audit events and stdlib logging setup."""
from .logger import audit_event
from .jsonl import append_jsonl, read_jsonl
from .stdlib_logging import configure_from_config, configure_stdlib_logging

__all__ = [
    "audit_event",
    "append_jsonl",
    "read_jsonl",
    "configure_stdlib_logging",
    "configure_from_config",
]
