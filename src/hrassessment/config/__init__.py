"\"\"\"Configuration management utilities.\"\"\""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..schemas.config import AppConfig, load_config


class ConfigManager:
    """Simple YAML-backed configuration loader."""

    SUFFIXES = (".yaml", ".yml")

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name without file extension."""
        path = self._resolve(name)
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    def load_app_config(self, name: str) -> AppConfig:
        """Load and validate a configuration profile."""
        return load_config(self.load(name))

    def _resolve(self, name: str) -> Path:
        for suffix in self.SUFFIXES:
            path = self._base_path / f"{name}{suffix}"
            if path.exists():
                return path
        raise FileNotFoundError(f"No configuration named {name!r} under {self._base_path}")

    @classmethod
    def for_file(cls, path: str | Path) -> tuple["ConfigManager", str]:
        """Split a config file path into a manager and the profile name."""
        path = Path(path)
        return cls(path.parent), path.stem


__all__ = ["ConfigManager"]
