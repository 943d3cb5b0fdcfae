from __future__ import annotations

import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from hasstates.core.utils.io import ensure_directory

_PATH_MUTEXES: dict[str, threading.Lock] = {}
_PATH_MUTEXES_LOCK = threading.Lock()


def _path_mutex(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _PATH_MUTEXES_LOCK:
        return _PATH_MUTEXES.setdefault(key, threading.Lock())


def _json_safe(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


def append_jsonl(*, path: Path, payload: dict[str, Any]) -> None:
    """Append one JSON line to `path` under a per-path lock + fsync (fail-open)."""
    try:
        ensure_directory(path.parent)
        safe = {k: _json_safe(v) for k, v in payload.items()}
        line = json.dumps(safe, ensure_ascii=False) + "\n"
        with _path_mutex(path):
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line)
                fh.flush()
                os.fsync(fh.fileno())
    except (OSError, TypeError, ValueError):
        return


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Return every JSON object stored in ``path`` (missing file -> empty list)."""
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            events.append(json.loads(line))
    return events


__all__ = ["append_jsonl", "read_jsonl"]
