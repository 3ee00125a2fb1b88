# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0
"""
Child process supervision package.

Owns the single supervised program: spawning it in its own process group,
killing the whole group, and restarting it.
"""

from __future__ import annotations

from golive.supervisor.process_handle import ProcessHandle, ProcessState
from golive.supervisor.manager import ProcessStats, ProcessSupervisor

__all__ = [
    "ProcessHandle",
    "ProcessState",
    "ProcessStats",
    "ProcessSupervisor",
]
