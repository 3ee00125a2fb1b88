# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from golive.cli import cli_main

if __name__ == "__main__":
    cli_main()
