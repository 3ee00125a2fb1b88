# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Unified exception hierarchy for golive.

All domain-specific exceptions derive from :class:`GoliveError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except GoliveError as e:
        logger.critical("Startup failed: %s", e)

Manifest, watcher-creation and config errors are fatal at startup.
Registration, launch and termination errors are logged and survived.
"""

from __future__ import annotations

from pathlib import Path


class GoliveError(Exception):
    """Base exception for all golive errors."""


# ── Manifest ─────────────────────────────────────────────────


class ManifestError(GoliveError):
    """Errors locating or reading the project manifest."""


class ManifestNotFoundError(ManifestError):
    """No go.mod could be located for the program."""


class ManifestParseError(ManifestError):
    """The manifest is unreadable or syntactically malformed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        line: int | None = None,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.line = line
        if self.path is not None and line is not None:
            message = f"{self.path}:{line}: {message}"
        elif self.path is not None:
            message = f"{self.path}: {message}"
        super().__init__(message)


# ── Watcher ──────────────────────────────────────────────────


class WatchError(GoliveError):
    """Filesystem watcher errors."""


class WatchRegistrationError(WatchError):
    """A single path could not be registered with the watcher."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"cannot watch {path}: {reason}")
        self.path = Path(path)


class WatcherCreationError(WatchError):
    """The underlying watcher could not be created or started."""


# ── Process ──────────────────────────────────────────────────


class ProcessError(GoliveError):
    """Child process lifecycle errors."""


class ProcessLaunchError(ProcessError):
    """The child process could not be started."""


class ProcessTerminationError(ProcessError):
    """The child process group could not be signalled."""


# ── Configuration ────────────────────────────────────────────


class ConfigError(GoliveError):
    """Configuration errors."""
