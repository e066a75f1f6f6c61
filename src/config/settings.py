"""
Tool settings loader for array maintenance runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_SETTINGS_PATH = Path("/etc/array-maintenance.yaml")
ENV_SETTINGS_PATH = "ARRAY_MAINTENANCE_SETTINGS"


@dataclass(frozen=True)
class AppConfig:
    """Container for raw settings data and path helpers."""

    root_dir: Path
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path | None = None) -> "AppConfig":
        """Load settings from YAML; a missing default file yields empty settings."""
        settings_value = os.environ.get(ENV_SETTINGS_PATH)
        explicit = path is not None or bool(settings_value)
        settings_path = path
        if settings_path is None:
            settings_path = Path(settings_value) if settings_value else DEFAULT_SETTINGS_PATH
        settings_path = settings_path.expanduser()
        if not settings_path.is_absolute():
            settings_path = (Path.cwd() / settings_path).resolve()
        if not settings_path.exists():
            if explicit:
                raise FileNotFoundError(f"Settings file not found: {settings_path}")
            return cls(root_dir=Path.cwd(), raw={})
        with settings_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a mapping: {settings_path}")
        return cls(root_dir=settings_path.parent, raw=data)

    def get(self, *keys: str, default: Any = None) -> Any:
        """Retrieve nested settings values with an optional default."""
        node: Any = self.raw
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def resolve_path(self, *keys: str, default: str | None = None) -> Path:
        """Resolve a path from settings keys to an absolute Path."""
        value = self.get(*keys, default=default)
        if value is None:
            raise KeyError(f"Missing settings path for {'.'.join(keys)}")
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = (self.root_dir / path).resolve()
        return path
