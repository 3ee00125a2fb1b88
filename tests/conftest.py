# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for golive.

Provides config cache isolation, environment cleanup and Go module
scaffolding shared by all test modules.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers.filesystem import create_go_module
from tests.helpers.mocks import FakeToolchain


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch):
    """Drop the config cache and golive env vars around every test."""
    from golive.config import invalidate_cache

    monkeypatch.delenv("GOLIVE_CONFIG", raising=False)
    monkeypatch.delenv("GOLIVE_LOG_LEVEL", raising=False)
    invalidate_cache()
    yield
    invalidate_cache()


@pytest.fixture
def go_project(tmp_path: Path) -> dict[str, Path]:
    """A module ``proj`` with one local replacement ``../dep-src``."""
    dep = tmp_path / "dep-src"
    (dep / "pkg").mkdir(parents=True)
    main = create_go_module(
        tmp_path, "proj",
        replaces=["example.com/dep => ../dep-src"],
        subdirs=("internal/api", ".git/objects"),
    )
    return {
        "root": tmp_path / "proj",
        "main": main,
        "dep": dep,
    }


@pytest.fixture
def no_toolchain() -> FakeToolchain:
    """Toolchain that never answers, forcing the filesystem strategies."""
    return FakeToolchain()
