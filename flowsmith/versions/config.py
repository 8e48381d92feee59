# flowsmith/versions/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

DEFAULT_MAX_VERSIONS = 20

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def default_storage_dir() -> Path:
    return Path.home() / ".flowsmith" / "versions"


@dataclass(frozen=True)
class VersionConfig:
    """Settings for a VersionStore; passed in explicitly, never read from globals."""
    enabled: bool = True
    max_versions: int = DEFAULT_MAX_VERSIONS
    storage_dir: Path = field(default_factory=default_storage_dir)

    def __post_init__(self):
        if self.max_versions < 1:
            raise ValueError(f"max_versions must be >= 1, got {self.max_versions}")
        object.__setattr__(self, "storage_dir", Path(self.storage_dir).expanduser())

    @classmethod
    def from_env(cls, storage_dir: Optional[Path] = None, max_versions: Optional[int] = None) -> "VersionConfig":
        """
        Build a config from FLOWSMITH_VERSIONS_ENABLED, FLOWSMITH_MAX_VERSIONS and
        FLOWSMITH_VERSIONS_DIR; explicit arguments win over the environment.
        """
        cfg = cls()

        enabled = os.environ.get("FLOWSMITH_VERSIONS_ENABLED")
        if enabled is not None:
            flag = enabled.strip().lower()
            if flag not in _TRUE + _FALSE:
                raise ValueError(f"FLOWSMITH_VERSIONS_ENABLED: cannot parse {enabled!r} as a boolean")
            cfg = replace(cfg, enabled=flag in _TRUE)

        env_max = os.environ.get("FLOWSMITH_MAX_VERSIONS")
        if env_max is not None:
            try:
                cfg = replace(cfg, max_versions=int(env_max))
            except ValueError as e:
                raise ValueError(f"FLOWSMITH_MAX_VERSIONS: {e}") from e

        env_dir = os.environ.get("FLOWSMITH_VERSIONS_DIR")
        if env_dir:
            cfg = replace(cfg, storage_dir=Path(env_dir))

        if storage_dir is not None:
            cfg = replace(cfg, storage_dir=Path(storage_dir))
        if max_versions is not None:
            cfg = replace(cfg, max_versions=max_versions)
        return cfg
