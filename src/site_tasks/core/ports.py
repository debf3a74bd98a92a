# src/site_tasks/core/ports.py

"""
Ports (interfaces) used by the task core.

The core depends on Protocols instead of concrete implementations.
This keeps storage swappable (SQLite today, a document store tomorrow)
and makes testing easier.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol, Sequence

from ..tasks.task_models import Project, Task, TaskQuery, User


class PageWindow(Protocol):
    @property
    def offset(self) -> int: ...

    @property
    def limit(self) -> int: ...


class TaskRepo(Protocol):
    """Narrow CRUD boundary over task records. No business rules."""

    def find(self, query: TaskQuery, pagination: PageWindow | None = None) -> tuple[list[Task], int]: ...
    def find_by_id(self, task_id: str) -> Task | None: ...
    def find_many(self, task_ids: Iterable[str]) -> dict[str, Task]: ...
    def existing_ids(self, task_ids: Iterable[str]) -> set[str]: ...
    def insert(self, task: Task) -> str: ...
    def update_fields(self, task_id: str, fields: dict[str, Any]) -> bool: ...
    def delete_by_id(self, task_id: str, *, if_unreferenced: bool = False) -> bool: ...
    def count_dependents(self, task_id: str) -> int: ...
    def dependency_map(self, task_ids: Iterable[str]) -> dict[str, frozenset[str]]: ...
    def new_id(self) -> str: ...


class ProjectDirectory(Protocol):
    def get(self, project_id: str) -> Project | None: ...

    def list_project_ids(
            self,
            *,
            manager: str | None = None,
            client: str | None = None,
    ) -> list[str]: ...

    def titles(self, project_ids: Iterable[str]) -> dict[str, str]: ...


class UserDirectory(Protocol):
    def exists(self, user_id: str) -> bool: ...
    def get(self, user_id: str) -> User | None: ...
    def get_many(self, user_ids: Sequence[str]) -> dict[str, User]: ...
