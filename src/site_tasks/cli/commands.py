# src/site_tasks/cli/commands.py

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import TaskError
from ..core.state import AppState
from ..tasks.task_inputs import Pagination, TaskFilters, TaskPatch
from ..tasks.task_models import to_iso
from ..tasks.task_service import ServiceResult

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_kv(args: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep:
            out[key.strip()] = value.strip()
    return out


def _format_error(result: ServiceResult) -> str:
    err = result.error
    if err is None:
        return ""
    details = err.details()
    extra = f" ({', '.join(f'{k}={v}' for k, v in details.items())})" if details else ""
    hint = " [retryable]" if err.retryable else ""
    return f"Error: {err.kind.value}: {err.message}{extra}{hint}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_whoami(state: AppState, args: list[str]) -> str:
    caller = state.caller
    if caller is None:
        return "No caller. Start the console with --user and --role."
    try:
        scope = state.service.scope.resolve_visible_projects(caller.id, caller.role)
    except TaskError as e:
        return f"Error: {e.kind.value}: {e.message}"
    return f"Caller: {caller.id} ({caller.role.value}), visible projects: {len(scope)}"


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks                         -> first page of active tasks
    /tasks priority=urgent page=2  -> any listing filter as key=value
    /tasks stats=true              -> include dashboard stats
    """
    params = _parse_kv(args)
    try:
        filters = TaskFilters.from_dict(params)
        pagination = Pagination.from_dict(
            params, default_limit=int(getattr(state.settings, "default_page_size", 20))
        )
    except TaskError as e:
        return f"Error: {e.kind.value}: {e.message}"

    include_stats = params.get("stats", "").lower() in ("1", "true", "yes")
    result = state.service.list_tasks(state.caller, filters, pagination, include_stats)
    if not result.ok:
        return _format_error(result)

    page = result.unwrap()
    if not page.tasks:
        return f"No tasks (page {page.pagination.page}, total {page.total})."

    lines = [f"Tasks (page {page.pagination.page}/{page.pages}, total {page.total}):"]
    for i, t in enumerate(page.tasks, start=page.pagination.offset + 1):
        due = to_iso(t.scheduled_date) or "-"
        title = page.project_titles.get(t.project_id) or t.project_id
        blocked = " BLOCKED" if t.is_blocked else ""
        lines.append(f"{i}. [{t.priority.value}] {t.title} ({title}) due={due} id={t.id}{blocked}")
    if page.stats is not None:
        lines.append(json.dumps(page.stats.to_dict(), ensure_ascii=False, indent=2))
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str]) -> str:
    result = state.service.list_tasks(state.caller, None, Pagination(page=1, limit=1), True)
    if not result.ok:
        return _format_error(result)
    stats = result.unwrap().stats
    return json.dumps(stats.to_dict() if stats else {}, ensure_ascii=False, indent=2)


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <task_id>"
    result = state.service.get_task(state.caller, args[0])
    if not result.ok:
        return _format_error(result)
    return json.dumps(result.unwrap().to_dict(), ensure_ascii=False, indent=2)


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete <task_id>"
    task_id = args[0]
    if emit:
        emit(f"Deleting task {task_id}...")
    result = state.service.delete_task(state.caller, task_id)
    if not result.ok:
        return _format_error(result)
    return f"Task {task_id} deleted."


def cmd_progress(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /progress <task_id> <0-100>"
    # Caller-checked path; record_progress is reserved for system jobs.
    result = state.service.update_task(state.caller, args[0], TaskPatch(progress=args[1]))
    if not result.ok:
        return _format_error(result)
    return f"Task {args[0]} progress is now {result.unwrap().progress}%."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show the console caller and its project scope.")
registry.register(
    "tasks",
    cmd_tasks,
    help_text="List active tasks: /tasks [projectId=..] [priority=..] [category=..] "
    "[assignedTo=..] [blocked=true] [dueSoon=true] [page=..] [limit=..] [stats=true].",
)
registry.register("stats", cmd_stats, help_text="Show dashboard statistics for the caller's scope.")
registry.register("show", cmd_show, help_text="Show one task: /show <task_id>.")
registry.register("delete", cmd_delete, help_text="Delete a task nobody depends on: /delete <task_id>.")
registry.register("progress", cmd_progress, help_text="Record progress: /progress <task_id> <0-100>.")
