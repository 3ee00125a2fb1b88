"""
Process handle for the supervised child process.
"""

# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from collections.abc import Mapping, Sequence
from datetime import datetime
from enum import Enum
from pathlib import Path

from golive.exceptions import ProcessTerminationError

logger = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform == "win32"


# ── Process State ──────────────────────────────────────────────────

class ProcessState(Enum):
    """State of the child process."""
    RUNNING = "running"          # Spawned, not yet signalled
    STOPPING = "stopping"        # Group kill sent, waiting for reap
    STOPPED = "stopped"          # Reaped


# ── Process Handle ─────────────────────────────────────────────────

class ProcessHandle:
    """
    Handle for one spawned child.

    The child is started as the leader of a new process group (a new
    session on POSIX), so its pgid equals its pid and everything it spawns
    can be terminated together with ``terminate_group()``.
    """

    def __init__(self, process: subprocess.Popen):
        self.process = process
        self.state = ProcessState.RUNNING
        self.started_at = datetime.now()

    @classmethod
    def spawn(
        cls,
        cmd: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> ProcessHandle:
        """Start *cmd* with inherited stdio in its own process group.

        Raises:
            OSError: The executable could not be started.
        """
        if _IS_WINDOWS:
            group_kwargs = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
        else:
            group_kwargs = {"start_new_session": True}
        process = subprocess.Popen(
            list(cmd),
            env=dict(env) if env is not None else None,
            cwd=cwd,
            **group_kwargs,
        )
        return cls(process)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def pgid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def is_alive(self) -> bool:
        """Check if the child itself is still running."""
        return self.process.poll() is None

    def terminate_group(self) -> None:
        """Forcefully kill the child and every process in its group.

        A group that has already exited is not an error.

        Raises:
            ProcessTerminationError: The group could not be signalled.
        """
        if _IS_WINDOWS:
            self._taskkill()
        else:
            try:
                os.killpg(self.pgid, signal.SIGKILL)
            except ProcessLookupError:
                logger.debug("Process group %d already gone", self.pgid)
            except OSError as e:
                raise ProcessTerminationError(
                    f"cannot kill process group {self.pgid}: {e}"
                ) from e
        self.state = ProcessState.STOPPING

    def _taskkill(self) -> None:
        result = subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(self.pid)],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0 and self.is_alive():
            raise ProcessTerminationError(
                f"taskkill failed for PID {self.pid}: {result.stderr.strip()}"
            )

    def wait(self, timeout: float | None = None) -> int:
        """Block until the child is reaped and return its exit code."""
        code = self.process.wait(timeout=timeout)
        self.state = ProcessState.STOPPED
        return code
