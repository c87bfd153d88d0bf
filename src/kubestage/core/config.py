#!/usr/bin/env python3
"""
KUBESTAGE CONFIG
----------------
Where the stage directories live and in which order they are applied.

Example file:

    assetsDir: /opt/nfd
    stages: [master, worker]
    instanceKind: NodeFeatureDiscovery
    timeoutSeconds: 30

Author: KubeStage Team
Date: 2026-10-18
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ruamel.yaml import YAML, YAMLError

from kubestage.core.errors import ConfigError

DEFAULT_ASSETS_DIR = "/opt/nfd"
DEFAULT_STAGES = ["master", "worker"]
DEFAULT_INSTANCE_KIND = "NodeFeatureDiscovery"

# file key -> (attribute, accepted types)
_FILE_KEYS = {
    "assetsDir": ("assets_dir", (str,)),
    "stages": ("stages", (list,)),
    "instanceKind": ("instance_kind", (str,)),
    "timeoutSeconds": ("timeout_seconds", (int, float)),
}


@dataclass
class EngineConfig:
    assets_dir: str = DEFAULT_ASSETS_DIR
    stages: List[str] = field(default_factory=lambda: list(DEFAULT_STAGES))
    instance_kind: str = DEFAULT_INSTANCE_KIND
    timeout_seconds: Optional[float] = None

    def stage_dirs(self) -> List[Tuple[str, str]]:
        """(stage name, directory) pairs in application order."""
        base = Path(self.assets_dir)
        return [(name, str(base / name)) for name in self.stages]

    @classmethod
    def from_file(cls, path: str) -> "EngineConfig":
        yaml = YAML(typ="safe", pure=True)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f)
        except OSError as e:
            raise ConfigError(f"Unable to read config {path}: {e}") from e
        except YAMLError as e:
            raise ConfigError(f"Malformed config {path}: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        kwargs = {}
        for key, value in data.items():
            if key not in _FILE_KEYS:
                raise ConfigError(f"Unknown config key '{key}'")
            attr, types = _FILE_KEYS[key]
            if isinstance(value, bool) or not isinstance(value, types):
                raise ConfigError(f"Config key '{key}' has invalid type {type(value).__name__}")
            kwargs[attr] = value

        stages = kwargs.get("stages")
        if stages is not None:
            if not stages or not all(isinstance(s, str) and s for s in stages):
                raise ConfigError("'stages' must be a non-empty list of directory names")
            if len(set(stages)) != len(stages):
                raise ConfigError("'stages' must not repeat a directory")
        return cls(**kwargs)
