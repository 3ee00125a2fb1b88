# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0
"""Live reload supervisor for Go programs."""

__version__ = "0.1.0"
