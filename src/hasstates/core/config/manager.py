"""
hasstates configuration management (YAML-only).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from hasstates.core.utils.io import iter_yaml_files, read_yaml
from hasstates.core.utils.merge import deep_merge as _deep_merge
from hasstates.data import get_data_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "HASSTATES_"
PROJECT_CONFIG_DIR = ".hasstates"
PROJECT_ROOT_ENV = "HASSTATES_PROJECT_ROOT"


def resolve_project_root() -> Path:
    """Return the project root: ``HASSTATES_PROJECT_ROOT`` or the working directory."""
    raw = os.environ.get(PROJECT_ROOT_ENV)
    if raw:
        return Path(raw).expanduser().resolve()
    return Path.cwd().resolve()


class ConfigManager:
    """Load, merge, and validate configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: HASSTATES_<section>__<key>
    2. Project config: <repo_root>/.hasstates/config/*.yaml (alphabetical order)
    3. Bundled defaults: hasstates.data/config/*.yaml (alphabetical order)
    """

    def __init__(self, repo_root: Optional[Path] = None) -> None:
        self.repo_root = Path(repo_root) if repo_root is not None else resolve_project_root()
        self.core_config_dir = get_data_path("config")
        self.project_config_dir = self.repo_root / PROJECT_CONFIG_DIR / "config"

    def deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge dictionaries. Delegates to shared implementation."""
        return _deep_merge(base, override)

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: configuration must never silently ignore invalid YAML.
        data = read_yaml(path, default={}, raise_on_error=True)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a YAML mapping")
        return data

    def validate_schema(self, config: Dict[str, Any], schema_name: str) -> None:
        from hasstates.core.schemas.validation import validate_payload

        validate_payload(config, schema_name)

    # ---------- Environment overrides ----------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _env_path(self, raw: str, *, strict: bool) -> List[str]:
        """``ENGINE__CONFLICT_RETRY__MAX_ATTEMPTS`` -> ``["engine", "conflict_retry", "max_attempts"]``."""
        if not raw:
            return []
        parts = raw.lower().split("__")
        if any(not part for part in parts):
            if strict:
                raise ValueError(f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'.")
            return []
        return parts

    def _iter_env_overrides(self, *, strict: bool) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ):
            if not key.startswith(ENV_PREFIX) or key == PROJECT_ROOT_ENV:
                continue
            path = self._env_path(key[len(ENV_PREFIX):], strict=strict)
            if path:
                yield path, self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        node = root
        for part in path[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"Cannot override {'.'.join(path)}: '{part}' is not a mapping")
            node = child
        node[path[-1]] = value

    def apply_env_overrides(self, cfg: Dict[str, Any], *, strict: bool) -> None:
        for path, typed_value in self._iter_env_overrides(strict=strict):
            self._set_nested(cfg, path, typed_value)

    # ---------- Loading ----------

    def _load_directory(self, directory: Path, cfg: Dict[str, Any]) -> Dict[str, Any]:
        for path in iter_yaml_files(directory):
            logger.debug("Loading config file %s", path)
            cfg = self.deep_merge(cfg, self.load_yaml(path))
        return cfg

    def load_config(self, *, validate: bool = True) -> Dict[str, Any]:
        """Return the merged configuration.

        Args:
            validate: Validate the merged result against ``config.schema.yaml``

        Raises:
            SchemaValidationError: If ``validate`` is set and the config is invalid
        """
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        cfg = self._load_directory(self.project_config_dir, cfg)
        self.apply_env_overrides(cfg, strict=validate)
        if validate:
            self.validate_schema(cfg, "config.schema")
        return cfg


__all__ = ["ConfigManager", "resolve_project_root", "ENV_PREFIX", "PROJECT_CONFIG_DIR"]
