# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from golive.cli.parser import build_parser, cli_main

__all__ = ["build_parser", "cli_main"]
