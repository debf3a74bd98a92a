# tests/test_commands.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from site_tasks.cli.bootstrap import create_initial_state
from site_tasks.cli.commands import CommandRegistry, registry
from site_tasks.connectors.console_connector import run_console_loop
from site_tasks.core.state import AppState
from site_tasks.tasks.task_inputs import Caller, TaskDraft
from site_tasks.tasks.task_models import Project, Role, User


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    st = create_initial_state(settings=settings, caller=Caller(id="pm1", role=Role.PROJECT_MANAGER))
    st.projects.upsert(Project(id="p1", title="Tower A", client="c1", manager="pm1"))
    st.projects.upsert(Project(id="p2", title="Bridge", client="c2", manager="pm2"))
    st.users.upsert(User(id="pm1", name="PM1", email="pm1@example.com", role=Role.PROJECT_MANAGER))
    return st


def _create(state: AppState, project_id: str, title: str, **fields) -> str:
    return state.service.create_task(state.caller, TaskDraft(project_id=project_id, title=title, **fields)).unwrap().id


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_commands(state) -> None:
    out = registry.handle(state, "/help") or ""
    for name in ("/tasks", "/stats", "/show", "/delete", "/progress", "/whoami"):
        assert name in out


def test_whoami_reports_scope(state) -> None:
    assert registry.handle(state, "/whoami") == "Caller: pm1 (project_manager), visible projects: 1"


def test_tasks_lists_scoped_page(state) -> None:
    _create(state, "p1", "Pour slab", priority="urgent")
    state.service.create_task(
        Caller(id="admin", role=Role.SUPER_ADMIN), TaskDraft(project_id="p2", title="Not mine")
    ).unwrap()

    out = registry.handle(state, "/tasks") or ""
    assert out.startswith("Tasks (page 1/1, total 1):")
    assert "[urgent] Pour slab (Tower A)" in out
    assert "Not mine" not in out

    empty = registry.handle(state, "/tasks priority=low") or ""
    assert empty == "No tasks (page 1, total 0)."


def test_tasks_reports_bad_filter(state) -> None:
    out = registry.handle(state, "/tasks priority=critical") or ""
    assert out.startswith("Error: validation: priority:")


def test_stats_outputs_json(state) -> None:
    _create(state, "p1", "A")
    out = registry.handle(state, "/stats") or ""
    assert '"totalPending": 1' in out
    assert '"byCategory"' in out


def test_delete_refuses_when_depended_on(state) -> None:
    a = _create(state, "p1", "A")
    b = _create(state, "p1", "B", dependencies=[a])

    notes: list[str] = []
    out = registry.handle(state, f"/delete {a}", emit=notes.append) or ""
    assert out.startswith("Error: has_dependents: 1 task(s) depend on this task")
    assert notes == [f"Deleting task {a}..."]

    assert registry.handle(state, f"/delete {b}") == f"Task {b} deleted."
    assert registry.handle(state, "/delete") == "Usage: /delete <task_id>"


def test_show_and_progress(state) -> None:
    base = _create(state, "p1", "Footings")
    task_id = _create(state, "p1", "A", dependencies=[base])

    assert registry.handle(state, f"/progress {task_id} 40") == f"Task {task_id} progress is now 40%."
    shown = registry.handle(state, f"/show {task_id}") or ""
    assert '"progress": 40' in shown
    assert '"updatedBy": "pm1"' in shown
    assert '"projectTitle": "Tower A"' in shown
    assert f'"id": "{base}"' in shown and '"title": "Footings"' in shown

    bad = registry.handle(state, f"/progress {task_id} lots") or ""
    assert bad.startswith("Error: validation: progress:")
    missing = registry.handle(state, "/show nope") or ""
    assert missing.startswith("Error: not_found:")


def test_progress_refuses_client_caller(state) -> None:
    task_id = _create(state, "p1", "A")
    state.caller = Caller(id="c1", role=Role.CLIENT)

    assert registry.handle(state, f"/progress {task_id} 90") == "Error: forbidden: not permitted"
    state.caller = Caller(id="pm1", role=Role.PROJECT_MANAGER)
    assert state.service.get_task(state.caller, task_id).unwrap().task.progress == 0


def test_tasks_rejects_page_past_store_range(state) -> None:
    reply = registry.handle(state, "/tasks page=10000000000000000000") or ""
    assert reply.startswith("Error: validation: page:")


def test_console_loop_runs_commands_until_exit(state) -> None:
    lines = iter(["", "/whoami", "hello", "/exit", "/help"])
    out: list[str] = []
    run_console_loop(state, read_line=lambda _prompt: next(lines), write=out.append)

    assert out[0].endswith("Signed in as pm1. /help lists commands, /exit quits.")
    assert out[1] == "Caller: pm1 (project_manager), visible projects: 1"
    assert out[2] == "Commands start with '/'. Try /help."
    assert len(out) == 3
