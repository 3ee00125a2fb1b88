# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Main loop: resolve, watch, debounce, restart.

The :class:`Orchestrator` wires the manifest resolver, the change watcher,
the debouncer and the process supervisor together and runs until a
termination signal arrives.  Shutdown is terminal.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from golive.config import GoliveConfig
from golive.debounce import Debouncer
from golive.manifest import ManifestResolver
from golive.supervisor import ProcessSupervisor
from golive.toolchain import GoToolchain
from golive.watcher import ChangeEvent, ChangeWatcher, IgnorePolicy

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP")


class OrchestratorState(Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


def clear_console() -> None:
    cmd = ["cmd", "/c", "cls"] if sys.platform == "win32" else ["clear"]
    try:
        subprocess.run(cmd, check=False)
    except OSError as e:
        logger.debug("Cannot clear console: %s", e)


class Orchestrator:
    """Supervise *program* and restart it whenever its sources change.

    Args:
        program: Entry file, passed to the toolchain as given.
        args: Arguments forwarded to the program.
        config: Loaded configuration (defaults when None).
        handle_signals: Install SIGINT/SIGTERM/SIGHUP handlers in ``run()``.
    """

    def __init__(
        self,
        program: str,
        args: Sequence[str] = (),
        config: GoliveConfig | None = None,
        *,
        resolver: ManifestResolver | None = None,
        watcher: ChangeWatcher | None = None,
        supervisor: ProcessSupervisor | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.program = program
        self.args = list(args)
        self.config = config or GoliveConfig()
        self.handle_signals = handle_signals

        toolchain = GoToolchain(self.config.process.toolchain)
        ignore = IgnorePolicy(self.config.watch.ignore_patterns)

        self.resolver = resolver or ManifestResolver(
            toolchain, manifest_name=self.config.process.manifest_name,
        )
        self.watcher = watcher or ChangeWatcher(ignore=ignore)
        self.supervisor = supervisor or ProcessSupervisor(
            toolchain.run_command,
            reap_timeout_sec=self.config.process.reap_timeout_sec,
        )
        self.debouncer = Debouncer(
            self._on_quiet,
            quiet_period=self.config.watch.quiet_period,
            ignore=ignore,
        )

        self.state = OrchestratorState.RUNNING
        self.watch_roots: list[Path] = []
        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._signals: list[signal.Signals] = []
        self._stopped = False
        self._cwd = Path.cwd()

    # ── Lifecycle ───────────────────────────────────────────────────

    async def run(self) -> None:
        """Start up, then block until a shutdown request.

        Raises:
            ManifestError: The watch set could not be resolved.
            WatcherCreationError: No event source could be created.
        """
        try:
            await self.start()
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    async def start(self) -> None:
        if self.handle_signals:
            self._install_signal_handlers()

        self.watch_roots = self.resolver.resolve(os.path.abspath(self.program))

        self.watcher.start()
        registered = self.watcher.register(self.watch_roots)
        if not registered:
            logger.warning("No directories could be watched; changes will not trigger restarts")
        watched = set(registered)
        for root in self.watch_roots:
            if root in watched:
                logger.info("Watching directory %s...", self._display_path(root))
            else:
                logger.warning("Not watching directory %s", self._display_path(root))

        self._tasks = [
            asyncio.create_task(self._drain_events(), name="golive-events"),
            asyncio.create_task(self._drain_errors(), name="golive-errors"),
        ]

        await self.supervisor.start(self.program, self.args)

    def request_shutdown(self, reason: str = "shutdown request") -> None:
        """Leave the RUNNING state; safe to call more than once."""
        if self.state is OrchestratorState.SHUTTING_DOWN:
            return
        logger.info("Received %s, shutting down...", reason)
        self.state = OrchestratorState.SHUTTING_DOWN
        self.debouncer.cancel_pending()
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Cancel pending work, kill the child and release the watcher."""
        if self._stopped:
            return
        self._stopped = True
        self.state = OrchestratorState.SHUTTING_DOWN

        self.debouncer.cancel_pending()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.debouncer.wait_inflight()

        await self.supervisor.shutdown()
        self.watcher.close()
        self._remove_signal_handlers()
        logger.info("Stopped")

    # ── Event handling ──────────────────────────────────────────────

    async def _drain_events(self) -> None:
        async for event in self.watcher.events():
            if self.state is not OrchestratorState.RUNNING:
                break
            if self.debouncer.on_event(event):
                logger.debug("Change detected: %s %s", event.op.value, event.path)

    async def _drain_errors(self) -> None:
        async for error in self.watcher.errors():
            logger.error("Error watching file: %s", error)

    async def _on_quiet(self, event: ChangeEvent) -> None:
        if self.state is not OrchestratorState.RUNNING:
            return
        logger.info("File %s changed. Restarting...", self._display_path(event.path))
        if self.config.clear_console:
            await asyncio.get_running_loop().run_in_executor(None, clear_console)
        await self.supervisor.restart(self.program, self.args)

    # ── Helpers ─────────────────────────────────────────────────────

    def _display_path(self, path: Path) -> str:
        if path == self._cwd:
            return self._cwd.name
        try:
            return os.path.relpath(path, self._cwd)
        except ValueError:
            # different drive on Windows
            return str(path)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for name in SHUTDOWN_SIGNALS:
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, self.request_shutdown, name)
            except (NotImplementedError, RuntimeError):
                logger.debug("Cannot install handler for %s", name)
                continue
            self._signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signals:
            loop.remove_signal_handler(sig)
        self._signals.clear()
