"""
Process Supervisor - owns the single supervised child process.
"""

# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import functools
import logging
import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from golive.exceptions import ProcessLaunchError, ProcessTerminationError
from golive.supervisor.process_handle import ProcessHandle

logger = logging.getLogger(__name__)

CommandFactory = Callable[[str, Sequence[str]], list[str]]


@dataclass
class ProcessStats:
    """Bookkeeping across restarts."""
    started_at: datetime | None = None
    stopped_at: datetime | None = None
    restart_count: int = 0
    exit_code: int | None = None


# ── Process Supervisor ─────────────────────────────────────────────

class ProcessSupervisor:
    """
    Supervisor for the single child process.

    Responsibilities:
    - Start the child in its own process group
    - Kill the whole group and reap the child
    - Restart (kill, then start) with at most one live child at any time

    Every public operation runs under one lock, so a debounced restart and
    the shutdown kill never interleave.  After ``shutdown()`` no new child
    is started.
    """

    def __init__(
        self,
        command_factory: CommandFactory,
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        reap_timeout_sec: float | None = None,
    ):
        self.command_factory = command_factory
        self.env = env
        self.cwd = cwd
        self.reap_timeout_sec = reap_timeout_sec

        self.handle: ProcessHandle | None = None
        self.stats = ProcessStats()
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def is_running(self) -> bool:
        return self.handle is not None and self.handle.is_alive()

    def get_pid(self) -> int | None:
        return self.handle.pid if self.handle else None

    # ── Public API ──────────────────────────────────────────────────

    async def start(self, path: str, args: Sequence[str] = ()) -> ProcessHandle | None:
        """Start the child; returns None if the launch failed."""
        async with self._lock:
            return await self._start_locked(path, args, announce=True)

    async def kill(self) -> None:
        """Kill the child's process group and wait until it is reaped."""
        async with self._lock:
            await self._kill_locked()

    async def restart(self, path: str, args: Sequence[str] = ()) -> ProcessHandle | None:
        """Kill the current child (if any), then start a new one."""
        async with self._lock:
            if self._closed:
                logger.debug("Supervisor closed, ignoring restart")
                return None

            running = self.handle is not None
            if running:
                await self._kill_locked()

            handle = await self._start_locked(path, args, announce=not running)
            if running and handle is not None:
                self.stats.restart_count += 1
                logger.info("Process restarted pid %d.", handle.pid)
            return handle

    async def shutdown(self) -> None:
        """Kill the child and refuse any further start."""
        async with self._lock:
            self._closed = True
            await self._kill_locked()

    # ── Internals (lock held) ───────────────────────────────────────

    async def _start_locked(
        self, path: str, args: Sequence[str], *, announce: bool,
    ) -> ProcessHandle | None:
        if self._closed:
            logger.debug("Supervisor closed, not starting %s", path)
            return None
        if self.handle is not None:
            await self._kill_locked()

        cmd = self.command_factory(path, list(args))
        if announce:
            logger.info("Process starting...")
            logger.info(" > %s", shlex.join(cmd))

        loop = asyncio.get_running_loop()
        try:
            handle = await loop.run_in_executor(
                None,
                functools.partial(ProcessHandle.spawn, cmd, env=self.env, cwd=self.cwd),
            )
        except (OSError, ValueError) as e:
            err = ProcessLaunchError(f"cannot run {cmd[0]}: {e}")
            logger.error("Error starting process: %s", err)
            return None

        self.handle = handle
        self.stats.started_at = handle.started_at
        self.stats.exit_code = None
        logger.debug("Process started (PID %s)", handle.pid)
        return handle

    async def _kill_locked(self) -> None:
        handle = self.handle
        if handle is None:
            return

        try:
            handle.terminate_group()
        except ProcessTerminationError as e:
            logger.error("Error killing previous process: %s", e)

        loop = asyncio.get_running_loop()
        reap = loop.run_in_executor(None, handle.wait)
        if self.reap_timeout_sec is not None:
            done, _ = await asyncio.wait({reap}, timeout=self.reap_timeout_sec)
            if not done:
                logger.warning(
                    "Process %d not reaped after %.1fs, still waiting",
                    handle.pid, self.reap_timeout_sec,
                )
        code = await reap

        self.handle = None
        self.stats.exit_code = code
        self.stats.stopped_at = datetime.now()
        logger.debug("Process %d reaped (code=%s)", handle.pid, code)
