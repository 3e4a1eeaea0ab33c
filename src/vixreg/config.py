"""Home directory resolution and runtime settings.

The registry home holds the snapshot cache database, the refresh stamp and
the user-level registry clone. Settings are layered:

1. built-in defaults
2. ``<home>/config.yaml``
3. ``<home>/.env``
4. ``VIX_REGISTRY_*`` process environment variables
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

# Default home location
DEFAULT_HOME = Path.home() / ".vix" / "registry-index"

# Environment variable for a custom home location
HOME_ENV_VAR = "VIX_REGISTRY_HOME"

ENV_PREFIX = "VIX_REGISTRY_"

CONFIG_FILENAME = "config.yaml"
ENV_FILENAME = ".env"

SNAPSHOT_URL = "https://vixcpp.github.io/registry/index/all.min.json"
REGISTRY_GIT_URL = "https://github.com/vixcpp/registry"


def get_home() -> Path:
    """Get the registry home directory path.

    Resolution order:
    1. VIX_REGISTRY_HOME environment variable (if set)
    2. Default: ~/.vix/registry-index/
    """
    env_value = os.environ.get(HOME_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_HOME


class Settings(BaseModel):
    """Runtime configuration for the builder, loader and search commands."""

    home: Path = Field(default_factory=get_home)
    snapshot_url: str = Field(
        default=SNAPSHOT_URL,
        description="URL of the published all.min.json snapshot",
    )
    registry_git_url: str = Field(
        default=REGISTRY_GIT_URL,
        description="Canonical git remote holding registry.json and index/",
    )
    background_timeout: float = Field(
        default=2.5,
        gt=0,
        description="Seconds allowed for an opportunistic background refresh",
    )
    cold_timeout: float = Field(
        default=6.0,
        gt=0,
        description="Seconds allowed for a fetch when no cached snapshot exists",
    )
    refresh_interval: int = Field(
        default=300,
        ge=0,
        description="Seconds between remote freshness checks (0 checks every time)",
    )
    search_limit: int = Field(default=20, ge=1, le=200)
    browse_limit: int = Field(default=50, ge=1, le=200)

    model_config = {"extra": "ignore"}

    @field_validator("home", mode="before")
    @classmethod
    def _expand_home(cls, value: Any) -> Path:
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        msg = "home must be a path or string"
        raise TypeError(msg)

    @property
    def cache_db_path(self) -> Path:
        return self.home / "cache.db"

    @property
    def clone_dir(self) -> Path:
        """User-level clone of the registry repository."""
        return self.home / "registry"

    @classmethod
    def load(cls, home: Path | None = None) -> Settings:
        """Load settings for *home* (defaults to :func:`get_home`)."""
        root = (home or get_home()).expanduser()
        data: dict[str, Any] = {}

        config_path = root / CONFIG_FILENAME
        if config_path.exists():
            raw = yaml.safe_load(config_path.read_text()) or {}
            if not isinstance(raw, dict):
                msg = f"{config_path} must contain a mapping"
                raise ValueError(msg)
            data.update(raw)

        env_path = root / ENV_FILENAME
        if env_path.exists():
            data.update(_prefixed(dotenv_values(env_path)))
        data.update(_prefixed(os.environ))
        data["home"] = root
        return cls(**data)


def _prefixed(values: Any) -> dict[str, str]:
    """Pick ``VIX_REGISTRY_*`` keys and strip the prefix."""
    overrides: dict[str, str] = {}
    for key, value in values.items():
        if value is None or not key.startswith(ENV_PREFIX) or key == HOME_ENV_VAR:
            continue
        overrides[key[len(ENV_PREFIX):].lower()] = value
    return overrides
