# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Central configuration module for golive.

Defines Pydantic models for the optional ``golive.json`` file and provides
a load helper with a module-level singleton cache.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from golive.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "golive.json"

# Version-control internals, editor/IDE project files and IDE build artifacts.
DEFAULT_IGNORE_PATTERNS: list[str] = [
    ".git",
    ".hg",
    ".svn",
    ".vscode",
    ".idea",
    "*.suo",
    "*.ntvs*",
    "*.njsproj",
    "*.sln",
    "*.sw?",
]

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class WatchConfig(BaseModel):
    debounce_ms: int = Field(default=500, ge=0)
    ignore_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
    )

    @property
    def quiet_period(self) -> float:
        """Debounce window in seconds."""
        return self.debounce_ms / 1000.0


class ProcessConfig(BaseModel):
    toolchain: str = "go"
    manifest_name: str = "go.mod"
    reap_timeout_sec: float | None = Field(default=None, gt=0)


class GoliveConfig(BaseModel):
    log_level: str = "INFO"
    log_file: Path | None = None
    clear_console: bool = True
    watch: WatchConfig = WatchConfig()
    process: ProcessConfig = ProcessConfig()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level


# ---------------------------------------------------------------------------
# Singleton cache
# ---------------------------------------------------------------------------

_config: GoliveConfig | None = None
_config_path: Path | None = None


def invalidate_cache() -> None:
    """Reset the module-level singleton cache."""
    global _config, _config_path
    _config = None
    _config_path = None


def get_config_path() -> Path:
    """Return the config path: ``GOLIVE_CONFIG`` or ./golive.json."""
    env_val = os.environ.get("GOLIVE_CONFIG")
    if env_val:
        return Path(env_val).expanduser()
    return Path.cwd() / CONFIG_FILENAME


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def load_config(path: Path | None = None) -> GoliveConfig:
    """Load configuration from disk, returning the cached instance when possible.

    When the file does not exist the default configuration is returned.
    ``GOLIVE_LOG_LEVEL`` overrides the file's log level.

    Raises:
        ConfigError: The file is not valid JSON or fails validation.
    """
    global _config, _config_path

    if path is None:
        path = get_config_path()

    if _config is not None and _config_path == path:
        return _config

    data: dict[str, Any] = {}
    if path.is_file():
        logger.debug("Loading config from %s", path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top-level value must be an object")
    else:
        logger.debug("Config file not found at %s; using defaults", path)

    env_level = os.environ.get("GOLIVE_LOG_LEVEL")
    if env_level:
        data["log_level"] = env_level

    try:
        config = GoliveConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    _config = config
    _config_path = path
    return config
