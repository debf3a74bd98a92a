# src/site_tasks/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState for the given caller, then runs the
operator console in the main thread.
"""

from __future__ import annotations

import argparse
import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import TaskError
from ..logging_setup import setup_logging
from ..tasks.task_inputs import Caller

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="site-tasks", description="Task dependency and priority console.")
    parser.add_argument("--user", required=True, help="Caller user id (already authenticated).")
    parser.add_argument(
        "--role",
        required=True,
        choices=["client", "project_manager", "super_admin"],
        help="Caller role.",
    )
    parser.add_argument(
        "-c",
        "--command",
        action="append",
        default=[],
        help="Run a slash command and exit (repeatable), e.g. -c '/tasks priority=urgent'.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file %s)", settings.app_name, log_file)

    try:
        caller = Caller.parse(args.user, args.role)
    except TaskError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    state = create_initial_state(settings=settings, caller=caller)

    if args.command:
        from .commands import registry

        for line in args.command:
            print(registry.handle(state, line) or f"Not a command: {line}")
        return 0

    try:
        run_console_loop(state)
    finally:
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
