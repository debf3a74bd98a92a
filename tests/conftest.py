# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from site_tasks.directory.store import ProjectDirectoryStore, UserDirectoryStore
from site_tasks.tasks.task_inputs import Caller, TaskDraft
from site_tasks.tasks.task_models import Project, Role, Task, User
from site_tasks.tasks.task_service import TaskQueryService
from site_tasks.tasks.task_store import TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the stores and TaskQueryService.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        db_path=tmp_path / "tasks.sqlite3",
        store_timeout_seconds=1.0,
        default_page_size=20,
        max_page_size=100,
        due_soon_days=7,
        upcoming_window_days=14,
        upcoming_limit=10,
        detect_cycles=True,
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path, timeout=settings.store_timeout_seconds)


@pytest.fixture()
def projects(settings: SimpleNamespace) -> ProjectDirectoryStore:
    """
    Three projects:
    - p1 "Tower A": managed by pm1, client c1
    - p2 "Bridge":  managed by pm2, client c2
    - p3 "Depot":   managed by pm1, client c2
    """
    store = ProjectDirectoryStore(settings.db_path)
    store.upsert(Project(id="p1", title="Tower A", client="c1", manager="pm1"))
    store.upsert(Project(id="p2", title="Bridge", client="c2", manager="pm2"))
    store.upsert(Project(id="p3", title="Depot", client="c2", manager="pm1"))
    return store


@pytest.fixture()
def users(settings: SimpleNamespace) -> UserDirectoryStore:
    store = UserDirectoryStore(settings.db_path)
    for uid, role in [
        ("admin", Role.SUPER_ADMIN),
        ("pm1", Role.PROJECT_MANAGER),
        ("pm2", Role.PROJECT_MANAGER),
        ("c1", Role.CLIENT),
        ("c2", Role.CLIENT),
        ("w1", Role.CLIENT),
    ]:
        store.upsert(User(id=uid, name=uid.upper(), email=f"{uid}@example.com", role=role))
    return store


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def service(
    task_store: TaskStore,
    projects: ProjectDirectoryStore,
    users: UserDirectoryStore,
    settings: SimpleNamespace,
    clock: FakeClock,
) -> TaskQueryService:
    return TaskQueryService(task_store, projects, users, settings=settings, clock=clock)


@pytest.fixture()
def admin() -> Caller:
    return Caller(id="admin", role=Role.SUPER_ADMIN)


@pytest.fixture()
def pm1() -> Caller:
    return Caller(id="pm1", role=Role.PROJECT_MANAGER)


@pytest.fixture()
def pm2() -> Caller:
    return Caller(id="pm2", role=Role.PROJECT_MANAGER)


@pytest.fixture()
def client1() -> Caller:
    return Caller(id="c1", role=Role.CLIENT)


@pytest.fixture()
def client2() -> Caller:
    return Caller(id="c2", role=Role.CLIENT)


@pytest.fixture()
def create(service: TaskQueryService, admin: Caller, clock: FakeClock) -> Callable[..., Task]:
    """
    Create a task through the service as super_admin and return it.

    Each call advances the clock by one second so created_at is strictly increasing.
    """

    def _create(project_id: str = "p1", title: str = "Task", **fields: Any) -> Task:
        result = service.create_task(admin, TaskDraft(project_id=project_id, title=title, **fields))
        clock.advance(1)
        return result.unwrap()

    return _create
