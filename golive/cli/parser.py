# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger("golive")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="golive",
        usage="golive [options] <path-to-your-program> [program-args...]",
        description="Run a Go program and restart it whenever its sources change",
    )
    parser.add_argument(
        "--config", default=None, metavar="PATH",
        help="Config file (default: $GOLIVE_CONFIG or ./golive.json)",
    )
    parser.add_argument(
        "--debounce-ms", type=_non_negative_int, default=None, metavar="MS",
        help="Quiet period before restarting (default: 500)",
    )
    parser.add_argument(
        "--no-clear", action="store_true",
        help="Do not clear the console before each restart",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Log level (default: $GOLIVE_LOG_LEVEL or INFO)",
    )
    parser.add_argument("program", nargs="?", help="Entry file of the Go program")
    parser.add_argument(
        "args", nargs=argparse.REMAINDER,
        help="Arguments passed to the program",
    )
    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    from golive.config import load_config
    from golive.exceptions import ConfigError, ManifestError, WatcherCreationError
    from golive.logging_config import bind_program, setup_logging

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.program is None:
        parser.print_usage(sys.stdout)
        sys.exit(1)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        setup_logging()
        logger.critical("%s", e)
        sys.exit(1)

    if args.debounce_ms is not None:
        config = config.model_copy(update={
            "watch": config.watch.model_copy(update={"debounce_ms": args.debounce_ms}),
        })
    if args.no_clear:
        config = config.model_copy(update={"clear_console": False})

    setup_logging(level=args.log_level or config.log_level, log_file=config.log_file)
    bind_program(args.program)

    try:
        asyncio.run(_run(args.program, args.args, config))
    except ManifestError as e:
        logger.critical("Error finding dependency directories: %s", e)
        sys.exit(1)
    except WatcherCreationError as e:
        logger.critical("%s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _run(program: str, program_args: list[str], config) -> None:
    from golive.orchestrator import Orchestrator

    await Orchestrator(program, program_args, config).run()
