"""RulesConfig dataclass and loader for manifest location settings."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_NAME = ".rulegraph.json"


@dataclass
class RulesConfig:
    manifest_path: str = "rules/manifest.json"
    rules_root: str = "."

    @property
    def manifest_file(self) -> Path:
        return _resolve(self.manifest_path)

    @property
    def root_dir(self) -> Path:
        return _resolve(self.rules_root)


def load_rules_config(path: Path | None = None) -> RulesConfig:
    """Load rules config from .rulegraph.json with env var overrides."""
    if path is None:
        path = Path.cwd() / DEFAULT_CONFIG_NAME
    config = RulesConfig()
    if path.exists():
        try:
            text = path.read_text()
            if text.strip():
                data = json.loads(text)
                section = data.get("rules", {}) if isinstance(data, dict) else {}
                if isinstance(section, dict):
                    _apply(config, section)
        except (json.JSONDecodeError, OSError):
            pass
    if env_manifest := os.environ.get("RULEGRAPH_MANIFEST"):
        config.manifest_path = env_manifest
    if env_root := os.environ.get("RULEGRAPH_ROOT"):
        config.rules_root = env_root
    return config


def _apply(cfg: RulesConfig, data: dict[str, object]) -> None:
    if "manifest_path" in data and isinstance(data["manifest_path"], str):
        cfg.manifest_path = data["manifest_path"]
    if "rules_root" in data and isinstance(data["rules_root"], str):
        cfg.rules_root = data["rules_root"]


def _resolve(value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else Path.cwd() / p
