# tests/test_dependency_guard.py

from __future__ import annotations

import pytest

from site_tasks.core.errors import (
    CircularDependencyError,
    HasDependentsError,
    InvalidReferenceError,
    SelfDependencyError,
)
from site_tasks.tasks.dependency_guard import DependencyGuard, ReferenceSet
from site_tasks.tasks.task_models import Role, Task, User
from site_tasks.tasks.task_store import TaskStore

from .fakes import NOW, InMemoryUserDirectory


@pytest.fixture()
def user_dir() -> InMemoryUserDirectory:
    d = InMemoryUserDirectory()
    d.add(User(id="w1", name="W1", email="w1@example.com", role=Role.CLIENT))
    return d


@pytest.fixture()
def guard(task_store: TaskStore, user_dir: InMemoryUserDirectory) -> DependencyGuard:
    return DependencyGuard(task_store, user_dir)


def _add(store: TaskStore, task_id: str, *deps: str) -> None:
    store.insert(
        Task(
            id=task_id,
            project_id="p1",
            title=task_id,
            created_by="admin",
            created_at=NOW,
            updated_at=NOW,
            dependencies=frozenset(deps),
        )
    )


def test_valid_references_pass(guard: DependencyGuard, task_store: TaskStore) -> None:
    _add(task_store, "a")
    guard.validate_references(ReferenceSet(id=None, assigned_to="w1", dependencies=frozenset({"a"})))
    guard.validate_references(ReferenceSet(id=None))


def test_unknown_assignee_is_reported_first(guard: DependencyGuard) -> None:
    with pytest.raises(InvalidReferenceError) as exc:
        guard.validate_references(
            ReferenceSet(id=None, assigned_to="ghost", dependencies=frozenset({"missing"}))
        )
    assert exc.value.field == "assigned_to"
    assert exc.value.ref_id == "ghost"


def test_first_missing_dependency_in_sorted_order(guard: DependencyGuard, task_store: TaskStore) -> None:
    _add(task_store, "b")
    with pytest.raises(InvalidReferenceError) as exc:
        guard.validate_references(ReferenceSet(id=None, dependencies=frozenset({"z", "b", "c"})))
    assert exc.value.field == "dependencies"
    assert exc.value.ref_id == "c"


def test_self_dependency(guard: DependencyGuard) -> None:
    with pytest.raises(SelfDependencyError):
        guard.validate_no_self_dependency(ReferenceSet(id="t1", dependencies=frozenset({"t1", "x"})))
    guard.validate_no_self_dependency(ReferenceSet(id=None, dependencies=frozenset({"t1"})))


def test_cycle_reports_path(guard: DependencyGuard, task_store: TaskStore) -> None:
    # c -> b -> a; making a depend on c closes the loop.
    _add(task_store, "a")
    _add(task_store, "b", "a")
    _add(task_store, "c", "b")

    with pytest.raises(CircularDependencyError) as exc:
        guard.validate_no_cycle("a", {"c"})
    assert exc.value.path == ["a", "c", "b", "a"]

    guard.validate_no_cycle("c", {"a"})


def test_cycle_detection_can_be_disabled(task_store: TaskStore, user_dir: InMemoryUserDirectory) -> None:
    _add(task_store, "a")
    _add(task_store, "b", "a")
    DependencyGuard(task_store, user_dir, detect_cycles=False).validate_no_cycle("a", {"b"})


def test_guard_deletion_counts_dependents(guard: DependencyGuard, task_store: TaskStore) -> None:
    _add(task_store, "a")
    _add(task_store, "b", "a")
    _add(task_store, "c", "a")

    with pytest.raises(HasDependentsError) as exc:
        guard.guard_deletion("a")
    assert exc.value.count == 2
    assert exc.value.to_dict()["count"] == 2

    guard.guard_deletion("b")
