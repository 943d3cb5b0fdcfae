"""Output for CLI commands: one formatter, text or ``--json`` mode."""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional


class OutputFormatter:
    """Prints command results as human-readable text or as JSON documents.

    Results go to stdout, errors to stderr. In JSON mode every document is
    a single object so callers can ``json.loads`` the whole stream.
    """

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def _dump(self, data: Any) -> str:
        return json.dumps(data, indent=self.indent, default=str)

    def success(self, data: Dict[str, Any], message: str, *, status: str = "success") -> None:
        if self.json_mode:
            print(self._dump({"status": status, **data}))
        else:
            print(message)

    def error(self, error: Exception, message: Optional[str] = None, *, error_code: str = "error") -> None:
        """Report ``error`` on stderr.

        Engine errors add their class name (``code``) and ``context`` to the
        JSON document.
        """
        text = message or str(error)
        if not self.json_mode:
            print(f"Error: {text}", file=sys.stderr)
            return
        payload: Dict[str, Any] = {"error": error_code, "message": text}
        to_json_error = getattr(error, "to_json_error", None)
        if callable(to_json_error):
            details = to_json_error()
            payload["code"] = details.get("code")
            payload["context"] = details.get("context")
        print(self._dump(payload), file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(self._dump(data))

    def text(self, message: str) -> None:
        if not self.json_mode:
            print(message)

    def text_kv(self, key: str, value: Any, prefix: str = "  ") -> None:
        self.text(f"{prefix}{key}: {value}")


__all__ = ["OutputFormatter"]
