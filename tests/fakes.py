# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from site_tasks.core.errors import InfrastructureError
from site_tasks.tasks.task_models import Project, Task, TaskQuery, User

DAY = 86400.0
NOW = 1_800_000_000.0  # fixed "current time" for deterministic windows


class FakeClock:
    """Deterministic clock; advance() moves time forward in seconds."""

    def __init__(self, start: float = NOW) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


@dataclass(slots=True)
class InMemoryProjectDirectory:
    """ProjectDirectory port backed by a dict; records every call for assertions."""

    projects: dict[str, Project] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def add(self, project: Project) -> None:
        self.projects[project.id] = project

    def get(self, project_id: str) -> Project | None:
        self.calls.append(("get", project_id))
        return self.projects.get(project_id)

    def list_project_ids(self, *, manager: str | None = None, client: str | None = None) -> list[str]:
        self.calls.append(("list", (manager, client)))
        return sorted(
            p.id
            for p in self.projects.values()
            if (manager is None or p.manager == manager) and (client is None or p.client == client)
        )

    def titles(self, project_ids: Iterable[str]) -> dict[str, str]:
        return {pid: self.projects[pid].title for pid in project_ids if pid in self.projects}


@dataclass(slots=True)
class InMemoryUserDirectory:
    users: dict[str, User] = field(default_factory=dict)

    def add(self, user: User) -> None:
        self.users[user.id] = user

    def exists(self, user_id: str) -> bool:
        return user_id in self.users

    def get(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    def get_many(self, user_ids: Sequence[str]) -> dict[str, User]:
        return {u: self.users[u] for u in user_ids if u in self.users}


class UnreachableTaskRepo:
    """TaskRepo whose every call fails the way an unreachable store does."""

    def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise InfrastructureError("task store unavailable: connection refused")

    def find(self, query: TaskQuery, pagination: Any = None) -> tuple[list[Task], int]:
        return self._fail()

    find_by_id = find_many = existing_ids = insert = update_fields = _fail
    delete_by_id = count_dependents = dependency_map = _fail

    def new_id(self) -> str:
        return "unused"
