# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Thin wrapper around the ``go`` command.

Queries used while locating the manifest are best-effort: a missing
binary or a failing command yields ``None`` and the caller moves on to
its next strategy.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_QUERY_TIMEOUT_SEC = 30.0


class GoToolchain:
    """Build and query commands for the Go toolchain."""

    def __init__(self, binary: str = "go") -> None:
        self.binary = binary

    def run_command(self, program_path: str, args: list[str] | tuple[str, ...] = ()) -> list[str]:
        """Return the argv that runs *program_path* with *args*."""
        return [self.binary, "run", program_path, *args]

    def _query(self, args: list[str], cwd: Path) -> str | None:
        cmd = [self.binary, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=_QUERY_TIMEOUT_SEC,
                check=True,
            )
        except FileNotFoundError:
            logger.debug("Toolchain binary not found: %s", self.binary)
            return None
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug("Toolchain query failed: %s: %s", " ".join(cmd), e)
            return None
        return result.stdout.strip()

    def module_manifest(self, directory: Path) -> Path | None:
        """Return the go.mod owning *directory*, as reported by ``go env GOMOD``."""
        out = self._query(["env", "GOMOD"], cwd=directory)
        if not out or out == os.devnull:
            return None
        return Path(out)

    def import_path(self, directory: Path) -> str | None:
        """Return the import path of the package in *directory*."""
        out = self._query(["list", "-f", "{{.ImportPath}}", "."], cwd=directory)
        if not out or out.startswith("_"):
            # "_/abs/dir" is what go list reports outside GOPATH and modules
            return None
        return out.splitlines()[0]

    def gopath_entries(self) -> list[Path]:
        """Return GOPATH entries, from the environment or ``go env GOPATH``."""
        gopath = os.environ.get("GOPATH")
        if not gopath:
            gopath = self._query(["env", "GOPATH"], cwd=Path.cwd())
        if not gopath:
            return []
        return [Path(entry) for entry in gopath.split(os.pathsep) if entry]
