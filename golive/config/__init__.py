# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from golive.config.models import (
    CONFIG_FILENAME,
    DEFAULT_IGNORE_PATTERNS,
    GoliveConfig,
    ProcessConfig,
    WatchConfig,
    get_config_path,
    invalidate_cache,
    load_config,
)

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_IGNORE_PATTERNS",
    "GoliveConfig",
    "ProcessConfig",
    "WatchConfig",
    "get_config_path",
    "invalidate_cache",
    "load_config",
]
