# src/site_tasks/connectors/console_connector.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({"/exit", "/quit"})
PROMPT = "tasks> "


def _stamp(text: str) -> str:
    return f"[{datetime.now().astimezone():%H:%M:%S}] {text}"


def run_console_loop(
    state: AppState,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """
    Operator REPL: every line goes through the slash-command registry.

    read_line/write are injectable so the loop can be driven without a TTY.
    """
    who = state.caller.id if state.caller else "-"
    logger.info("Console started caller=%s", who)
    write(_stamp(f"Signed in as {who}. /help lists commands, /exit quits."))

    def emit(text: str) -> None:
        write(_stamp(text))

    while True:
        try:
            line = read_line(PROMPT).strip()
        except (EOFError, KeyboardInterrupt):
            write("")
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break

        try:
            reply = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command failed: %s", line.split()[0])
            reply = "Internal error while handling the command. Details are in the log file."

        write(reply if reply is not None else "Commands start with '/'. Try /help.")

    logger.info("Console closed caller=%s", who)
