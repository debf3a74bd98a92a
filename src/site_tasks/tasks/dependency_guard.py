# src/site_tasks/tasks/dependency_guard.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from ..core.errors import (
    CircularDependencyError,
    HasDependentsError,
    InvalidReferenceError,
    SelfDependencyError,
)
from ..core.ports import TaskRepo, UserDirectory

logger = logging.getLogger(__name__)


class DependencyCandidate(Protocol):
    """Anything carrying the reference fields of a task about to be written."""

    @property
    def id(self) -> str | None: ...

    @property
    def assigned_to(self) -> str | None: ...

    @property
    def dependencies(self) -> frozenset[str]: ...


@dataclass(frozen=True, slots=True)
class ReferenceSet:
    """Only the reference fields an update actually touches."""

    id: str | None
    assigned_to: str | None = None
    dependencies: frozenset[str] = field(default_factory=frozenset)


class DependencyGuard:
    """
    Pre-write referential checks for tasks.

    All checks are synchronous and run before anything is persisted:
    a write that would leave a dangling reference is rejected, never repaired.
    """

    def __init__(self, tasks: TaskRepo, users: UserDirectory, *, detect_cycles: bool = True) -> None:
        self._tasks = tasks
        self._users = users
        self._detect_cycles = detect_cycles

    def validate_references(self, candidate: DependencyCandidate) -> None:
        """
        assigned_to must be an existing user, every dependency an existing task.

        Raises InvalidReferenceError naming the first id that does not resolve
        (assignee first, then dependencies in sorted order).
        """
        if candidate.assigned_to and not self._users.exists(candidate.assigned_to):
            logger.info("Rejected write: unknown assignee %s", candidate.assigned_to)
            raise InvalidReferenceError("assigned_to", candidate.assigned_to)

        deps = sorted(candidate.dependencies or ())
        if not deps:
            return
        existing = self._tasks.existing_ids(deps)
        for dep in deps:
            if dep not in existing:
                logger.info("Rejected write: unknown dependency %s", dep)
                raise InvalidReferenceError("dependencies", dep)

    def validate_no_self_dependency(self, candidate: DependencyCandidate) -> None:
        if candidate.id and candidate.id in (candidate.dependencies or ()):
            raise SelfDependencyError(candidate.id)

    def validate_no_cycle(self, task_id: str, dependencies: Iterable[str]) -> None:
        """
        Reject a dependency set that would make `task_id` reachable from itself.

        Walks stored dependency edges breadth-first starting at the proposed
        dependencies, one store round-trip per level.
        """
        if not self._detect_cycles:
            return
        start = sorted(set(dependencies))
        parent: dict[str, str] = {dep: task_id for dep in start}
        seen = set(start)
        frontier = start

        while frontier:
            edges = self._tasks.dependency_map(frontier)
            nxt: list[str] = []
            for node in frontier:
                for dep in sorted(edges.get(node, ())):
                    if dep == task_id:
                        trail = [node]
                        while parent[trail[-1]] != task_id:
                            trail.append(parent[trail[-1]])
                        path = [task_id, *reversed(trail), task_id]
                        logger.info("Rejected write: dependency cycle %s", path)
                        raise CircularDependencyError(path)
                    if dep not in seen:
                        seen.add(dep)
                        parent[dep] = node
                        nxt.append(dep)
            frontier = nxt

    def guard_deletion(self, task_id: str) -> None:
        count = self._tasks.count_dependents(task_id)
        if count > 0:
            logger.info("Refused delete task=%s dependents=%d", task_id, count)
            raise HasDependentsError(task_id, count)
