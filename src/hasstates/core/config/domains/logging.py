"""Domain-specific configuration for audit/logging.

This config controls:
- Whether structured audit events are emitted
- Where the audit JSONL log is stored
- Whether stdlib logging is routed to a file
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Optional

from ..base import BaseDomainConfig
from ..manager import resolve_project_root


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def enabled(self) -> bool:
        return bool(self.section.get("enabled", False))

    @cached_property
    def audit_enabled(self) -> bool:
        audit = self.section.get("audit") or {}
        return bool(audit.get("enabled", True))

    @cached_property
    def audit_path_template(self) -> str:
        audit = self.section.get("audit") or {}
        jsonl = audit.get("jsonl") or {}
        return str(jsonl.get("path", "") or "")

    @cached_property
    def stdlib_enabled(self) -> bool:
        std = self.section.get("stdlib") or {}
        return bool(std.get("enabled", False))

    @cached_property
    def stdlib_level(self) -> str:
        std = self.section.get("stdlib") or {}
        return str(std.get("level", "INFO") or "INFO")

    @cached_property
    def stdlib_path_template(self) -> str:
        std = self.section.get("stdlib") or {}
        return str(std.get("path", "") or "")

    def _resolve(self, template: str, root: Optional[Path]) -> Optional[Path]:
        if not template:
            return None
        path = Path(template).expanduser()
        if path.is_absolute():
            return path
        return (root or resolve_project_root()) / path

    def resolve_audit_path(self, root: Optional[Path] = None) -> Optional[Path]:
        """Absolute audit log path (relative templates resolve under ``root``)."""
        return self._resolve(self.audit_path_template, root or self.repo_root)

    def resolve_stdlib_path(self, root: Optional[Path] = None) -> Optional[Path]:
        return self._resolve(self.stdlib_path_template, root or self.repo_root)


__all__ = ["LoggingConfig"]
