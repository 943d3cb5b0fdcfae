from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from hasstates.core.audit.jsonl import append_jsonl
from hasstates.core.config.domains.logging import LoggingConfig
from hasstates.core.utils.time import utc_timestamp


def audit_event(
    event: str,
    *,
    repo_root: Path | None = None,
    config: Optional[LoggingConfig] = None,
    **fields: Any,
) -> None:
    """Emit a single structured audit event as JSONL (fail-open).

    This is separate from stdlib `logging` so the audit stream stays a
    machine-readable, append-only record of transitions. Callers emitting
    many events pass a ``config`` resolved once instead of loading it per
    event.
    """
    if config is None:
        try:
            config = LoggingConfig(repo_root=repo_root)
        except (OSError, ValueError, RuntimeError):
            return

    if not config.enabled or not config.audit_enabled:
        return

    path = config.resolve_audit_path(repo_root)
    if path is None:
        return

    payload: dict[str, Any] = {
        "ts": utc_timestamp(repo_root),
        "event": event,
        "pid": os.getpid(),
    }
    payload.update(fields)
    append_jsonl(path=path, payload=payload)


__all__ = ["audit_event"]
