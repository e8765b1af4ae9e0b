"""
YAML-backed settings for ingest runs.

Every section is optional; components read their keys through the typed
accessors below and fall back to their own defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = Path("ingest.yaml")
ENV_CONFIG_PATH = "INGEST_CONFIG"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class AppConfig:
    """Parsed configuration plus the directory relative paths resolve against."""

    root_dir: Path
    raw: Dict[str, Any]

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        """Read YAML from ``path``, ``$INGEST_CONFIG`` or ``./ingest.yaml``."""
        if path is None:
            env_value = os.environ.get(ENV_CONFIG_PATH)
            path = Path(env_value) if env_value else DEFAULT_CONFIG_PATH
        config_path = Path(path).expanduser()
        if not config_path.is_absolute():
            config_path = (Path.cwd() / config_path).resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {config_path}")
        return cls(root_dir=config_path.parent, raw=data)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, root_dir: Optional[Path] = None) -> "AppConfig":
        """Build a configuration from an in-memory mapping."""
        return cls(root_dir=(root_dir or Path.cwd()).resolve(), raw=dict(data or {}))

    def get(self, *keys: str, default: Any = None) -> Any:
        """Nested lookup; a missing key or a non-mapping node yields ``default``."""
        node: Any = self.raw
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return dict(value) if isinstance(value, dict) else {}

    def get_int(self, *keys: str, default: int) -> int:
        value = self.get(*keys, default=None)
        return default if value is None else int(value)

    def get_float(self, *keys: str, default: float) -> float:
        value = self.get(*keys, default=None)
        return default if value is None else float(value)

    def get_bool(self, *keys: str, default: bool) -> bool:
        value = self.get(*keys, default=None)
        if value is None:
            return default
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            raise ValueError(f"Expected a boolean for {'.'.join(keys)}, got {value!r}")
        return bool(value)

    def get_list(self, *keys: str, default: Iterable[str] = ()) -> List[str]:
        value = self.get(*keys, default=None)
        if value is None:
            return list(default)
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    def resolve_path(self, *keys: str, default: Optional[str] = None) -> Path:
        """Resolve a configured path; relative values are anchored at ``root_dir``."""
        value = self.get(*keys, default=default)
        if value is None:
            raise KeyError(f"Missing config path for {'.'.join(keys)}")
        path = Path(str(value)).expanduser()
        if not path.is_absolute():
            path = (self.root_dir / path).resolve()
        return path


def ensure_directories(paths: Iterable[Path], mode: int = 0o700) -> None:
    """Create each directory (and parents) with owner-only permissions."""
    for path in paths:
        path.mkdir(parents=True, exist_ok=True, mode=mode)
