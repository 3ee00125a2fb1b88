"""Unit tests for golive/orchestrator.py: startup, restart on change, shutdown."""
# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from golive.config import GoliveConfig, WatchConfig
from golive.debounce import DebounceTimer, Debouncer
from golive.exceptions import ManifestNotFoundError
from golive.manifest import ManifestResolver
from golive.orchestrator import Orchestrator, OrchestratorState
from golive.supervisor import ProcessSupervisor
from golive.watcher import ChangeEvent, ChangeWatcher, Op
from tests.helpers.mocks import FakeToolchain, ManualClock, make_observer

QUIET = 0.5


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def observer():
    return make_observer()


@pytest.fixture
def make_orchestrator(go_project, observer, clock):
    """Build an Orchestrator over *go_project* with a mocked child process."""

    def factory(**overrides) -> Orchestrator:
        config = overrides.pop("config", GoliveConfig(clear_console=False))
        orch = Orchestrator(
            str(go_project["main"]),
            ["-addr", ":8080"],
            config,
            resolver=overrides.pop("resolver", ManifestResolver(FakeToolchain())),
            watcher=ChangeWatcher(observer_factory=lambda: observer),
            supervisor=AsyncMock(spec=ProcessSupervisor),
            handle_signals=overrides.pop("handle_signals", False),
        )
        orch.debouncer = Debouncer(
            orch._on_quiet,
            quiet_period=QUIET,
            ignore=orch.debouncer.ignore,
            timer=DebounceTimer(sleep=clock.sleep),
        )
        return orch

    return factory


def write(path: Path) -> ChangeEvent:
    return ChangeEvent(path, Op.WRITE)


# ── Startup ─────────────────────────────────────────────────


class TestStartup:
    @pytest.mark.asyncio
    async def test_watches_module_and_replacements_then_starts(
        self, make_orchestrator, go_project, observer, caplog,
    ):
        orch = make_orchestrator()
        with caplog.at_level(logging.INFO, logger="golive.orchestrator"):
            await orch.start()

        assert orch.watch_roots == [go_project["root"], go_project["dep"]]
        scheduled = {c.args[1] for c in observer.schedule.call_args_list}
        assert str(go_project["dep"] / "pkg") in scheduled
        assert caplog.text.count("Watching directory") == 2
        orch.supervisor.start.assert_awaited_once_with(
            str(go_project["main"]), ["-addr", ":8080"],
        )
        await orch.shutdown()

    @pytest.mark.asyncio
    async def test_unwatchable_root_not_reported_as_watched(self, go_project, caplog):
        observer = make_observer(fail_paths={str(go_project["dep"])})
        orch = Orchestrator(
            str(go_project["main"]),
            config=GoliveConfig(clear_console=False),
            resolver=ManifestResolver(FakeToolchain()),
            watcher=ChangeWatcher(observer_factory=lambda: observer),
            supervisor=AsyncMock(spec=ProcessSupervisor),
            handle_signals=False,
        )
        with caplog.at_level(logging.INFO, logger="golive.orchestrator"):
            await orch.start()

        watching = [r.getMessage() for r in caplog.records if "Watching directory" in r.getMessage()]
        skipped = [
            r for r in caplog.records
            if r.name == "golive.orchestrator" and r.levelno == logging.WARNING
        ]
        assert len(watching) == 1
        assert "dep-src" not in watching[0]
        assert len(skipped) == 1
        assert "Not watching directory" in skipped[0].getMessage()
        assert "dep-src" in skipped[0].getMessage()
        await orch.shutdown()

    @pytest.mark.asyncio
    async def test_resolution_failure_aborts_before_start(self, tmp_path, observer):
        loose = tmp_path / "loose"
        loose.mkdir()
        orch = Orchestrator(
            str(loose / "main.go"),
            resolver=ManifestResolver(FakeToolchain()),
            watcher=ChangeWatcher(observer_factory=lambda: observer),
            supervisor=AsyncMock(spec=ProcessSupervisor),
            handle_signals=False,
        )

        with pytest.raises(ManifestNotFoundError):
            await orch.run()

        orch.supervisor.start.assert_not_awaited()
        observer.start.assert_not_called()
        orch.supervisor.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_returns_after_shutdown_request(self, make_orchestrator, caplog):
        orch = make_orchestrator()
        with caplog.at_level(logging.INFO, logger="golive.orchestrator"):
            task = asyncio.create_task(orch.run())
            await asyncio.sleep(0.05)
            orch.request_shutdown("SIGTERM")
            await asyncio.wait_for(task, timeout=2.0)

        orch.supervisor.shutdown.assert_awaited_once()
        assert "Received SIGTERM, shutting down..." in caplog.text
        assert "Stopped" in caplog.text


# ── Change handling ─────────────────────────────────────────


class TestChanges:
    @pytest.mark.asyncio
    async def test_burst_triggers_single_restart(self, make_orchestrator, go_project, clock):
        orch = make_orchestrator()
        await orch.start()

        for i in range(5):
            orch.watcher.publish(write(go_project["root"] / f"f{i}.go"))
            await clock.advance(0.1)
        await clock.advance(QUIET)
        await orch.debouncer.wait_inflight()

        orch.supervisor.restart.assert_awaited_once_with(
            str(go_project["main"]), ["-addr", ":8080"],
        )
        await orch.shutdown()

    @pytest.mark.asyncio
    async def test_change_in_replacement_restarts(self, make_orchestrator, go_project, clock, caplog):
        orch = make_orchestrator()
        await orch.start()

        with caplog.at_level(logging.INFO, logger="golive.orchestrator"):
            orch.watcher.publish(write(go_project["dep"] / "pkg" / "lib.go"))
            await clock.advance(0)
            await clock.advance(QUIET)
            await orch.debouncer.wait_inflight()

        orch.supervisor.restart.assert_awaited_once()
        assert "lib.go changed. Restarting..." in caplog.text
        await orch.shutdown()

    @pytest.mark.asyncio
    async def test_metadata_and_ignored_events_do_not_restart(
        self, make_orchestrator, go_project, clock,
    ):
        orch = make_orchestrator()
        await orch.start()

        orch.watcher.publish(ChangeEvent(go_project["main"], Op.CHMOD))
        orch.watcher.publish(ChangeEvent(go_project["main"], Op.ACCESS))
        orch.watcher.publish(write(go_project["root"] / ".git" / "index"))
        await clock.advance(0)
        await clock.advance(5.0)

        orch.supervisor.restart.assert_not_awaited()
        await orch.shutdown()

    @pytest.mark.asyncio
    async def test_clears_console_before_restart(self, go_project, make_orchestrator):
        orch = make_orchestrator(config=GoliveConfig(clear_console=True))
        with patch("golive.orchestrator.clear_console") as clear:
            await orch._on_quiet(write(go_project["main"]))
        clear.assert_called_once()
        orch.supervisor.restart.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_watcher_errors_logged(self, make_orchestrator, caplog):
        orch = make_orchestrator()
        await orch.start()

        with caplog.at_level(logging.ERROR, logger="golive.orchestrator"):
            orch.watcher.report_error(OSError("inotify queue overflow"))
            for _ in range(5):
                await asyncio.sleep(0)

        assert "Error watching file: inotify queue overflow" in caplog.text
        assert orch.state is OrchestratorState.RUNNING
        await orch.shutdown()


# ── Real filesystem events ──────────────────────────────────


@pytest.mark.skipif(sys.platform != "linux", reason="inotify attribute events")
class TestRealObserver:
    @pytest.fixture
    def live_orchestrator(self, go_project):
        return Orchestrator(
            str(go_project["main"]),
            config=GoliveConfig(clear_console=False, watch=WatchConfig(debounce_ms=50)),
            resolver=ManifestResolver(FakeToolchain()),
            supervisor=AsyncMock(spec=ProcessSupervisor),
            handle_signals=False,
        )

    @pytest.mark.asyncio
    async def test_chmod_of_untouched_file_does_not_restart(self, live_orchestrator, go_project):
        orch = live_orchestrator
        await orch.start()
        try:
            os.chmod(go_project["main"], 0o600)
            await asyncio.sleep(0.5)
            await orch.debouncer.wait_inflight()
            orch.supervisor.restart.assert_not_awaited()
        finally:
            await orch.shutdown()

    @pytest.mark.asyncio
    async def test_content_write_restarts(self, live_orchestrator, go_project):
        orch = live_orchestrator
        await orch.start()
        try:
            go_project["main"].write_text("package main\n\nfunc main() {}\n", encoding="utf-8")
            for _ in range(100):
                if orch.supervisor.restart.await_count:
                    break
                await asyncio.sleep(0.05)
            orch.supervisor.restart.assert_awaited()
        finally:
            await orch.shutdown()


# ── Shutdown ────────────────────────────────────────────────


class TestShutdown:
    @pytest.mark.asyncio
    async def test_pending_restart_cancelled(self, make_orchestrator, go_project, observer, clock):
        orch = make_orchestrator()
        await orch.start()

        orch.watcher.publish(write(go_project["main"]))
        await clock.advance(0.2)
        assert orch.debouncer.timer.pending

        orch.request_shutdown("SIGINT")
        await clock.advance(5.0)
        await orch.shutdown()

        orch.supervisor.restart.assert_not_awaited()
        orch.supervisor.shutdown.assert_awaited_once()
        observer.stop.assert_called_once()
        assert orch.state is OrchestratorState.SHUTTING_DOWN

    @pytest.mark.asyncio
    async def test_quiet_period_after_shutdown_does_nothing(self, make_orchestrator, go_project):
        orch = make_orchestrator()
        orch.request_shutdown()
        await orch._on_quiet(write(go_project["main"]))
        orch.supervisor.restart.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_shutdown_idempotent(self, make_orchestrator, caplog):
        orch = make_orchestrator()
        with caplog.at_level(logging.INFO, logger="golive.orchestrator"):
            orch.request_shutdown("SIGINT")
            orch.request_shutdown("SIGTERM")
        assert caplog.text.count("shutting down") == 1
        await orch.shutdown()
        await orch.shutdown()
        orch.supervisor.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    async def test_sigterm_requests_shutdown(self, make_orchestrator):
        orch = make_orchestrator(handle_signals=True)
        await orch.start()
        try:
            signal.raise_signal(signal.SIGTERM)
            await asyncio.wait_for(orch._shutdown_event.wait(), timeout=2.0)
            assert orch.state is OrchestratorState.SHUTTING_DOWN
        finally:
            await orch.shutdown()
        assert orch._signals == []


# ── Display ─────────────────────────────────────────────────


class TestDisplayPath:
    @pytest.mark.asyncio
    async def test_relative_to_working_directory(self, make_orchestrator, go_project, monkeypatch):
        monkeypatch.chdir(go_project["root"])
        orch = make_orchestrator()
        root = go_project["root"]

        assert orch._display_path(root) == root.name
        assert orch._display_path(root / "internal" / "api") == str(Path("internal") / "api")
        assert orch._display_path(go_project["dep"]) == str(Path("..") / "dep-src")
