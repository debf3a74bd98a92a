# src/site_tasks/tasks/task_service.py

"""
TaskQueryService: the entry point for listing and mutating tasks.

Every request:
1. checks the caller (identity + role),
2. resolves the caller's visible/managed project scope,
3. only then touches task records.

Expected failures (forbidden, not found, bad references, store trouble...) come
back as ServiceResult errors. Anything else is a bug and propagates.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from ..core.errors import (
    ForbiddenError,
    InfrastructureError,
    NotFoundError,
    TaskError,
    UnauthorizedError,
    ValidationError,
)
from ..core.ports import ProjectDirectory, TaskRepo, UserDirectory
from .access import AccessScopeResolver
from .dependency_guard import DependencyGuard, ReferenceSet
from .stats import DAY_SECONDS, StatsAggregator, TaskStats
from .task_inputs import Caller, Pagination, TaskDraft, TaskFilters, TaskPatch
from .task_models import (
    MANAGING_ROLES,
    SYSTEM_ACTOR,
    Project,
    Role,
    Task,
    TaskQuery,
    TaskStatus,
    User,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ServiceResult(Generic[T]):
    value: T | None = None
    error: TaskError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"success": False, **self.error.to_dict()}
        value: Any = self.value
        data = value.to_dict() if hasattr(value, "to_dict") else value
        return {"success": True, "data": data}


@dataclass(slots=True)
class TaskPage:
    tasks: list[Task]
    pagination: Pagination
    total: int
    stats: TaskStats | None = None
    project_titles: dict[str, str] = field(default_factory=dict)
    assignees: dict[str, User] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return self.pagination.pages(self.total)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "tasks": [
                t.to_dict(
                    project_title=self.project_titles.get(t.project_id),
                    assignee=self.assignees.get(t.assigned_to) if t.assigned_to else None,
                )
                for t in self.tasks
            ],
            "pagination": {
                "page": self.pagination.page,
                "limit": self.pagination.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }
        if self.stats is not None:
            out["stats"] = self.stats.to_dict()
        return out


@dataclass(slots=True)
class TaskDetail:
    """One task plus the lookups the detail view shows alongside it."""

    task: Task
    project_title: str | None = None
    assignee: User | None = None
    dependency_tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out = self.task.to_dict(project_title=self.project_title, assignee=self.assignee)
        out["dependencyTasks"] = [
            {"id": d.id, "title": d.title, "status": d.status.value} for d in self.dependency_tasks
        ]
        return out


class TaskQueryService:
    def __init__(
        self,
        tasks: TaskRepo,
        projects: ProjectDirectory,
        users: UserDirectory,
        *,
        settings: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tasks = tasks
        self._projects = projects
        self._users = users
        self._clock = clock

        self._default_page_size = int(getattr(settings, "default_page_size", 20))
        self._max_page_size = int(getattr(settings, "max_page_size", 100))
        self._due_soon_days = float(getattr(settings, "due_soon_days", 7))

        self.scope = AccessScopeResolver(projects)
        self.guard = DependencyGuard(
            tasks,
            users,
            detect_cycles=bool(getattr(settings, "detect_cycles", True)),
        )
        self.stats = StatsAggregator(
            tasks,
            projects,
            due_soon_days=self._due_soon_days,
            upcoming_window_days=float(getattr(settings, "upcoming_window_days", 14)),
            upcoming_limit=int(getattr(settings, "upcoming_limit", 10)),
        )

    # ---- helpers ----

    @staticmethod
    def _run(op: str, fn: Callable[[], T]) -> ServiceResult[T]:
        try:
            return ServiceResult(value=fn())
        except TaskError as e:
            if e.retryable:
                logger.warning("%s failed (retryable): %s", op, e.message)
            else:
                logger.info("%s rejected: %s", op, e.to_dict())
            return ServiceResult(error=e)

    @staticmethod
    def _require_caller(caller: Caller | None) -> Caller:
        if caller is None or not caller.id:
            raise UnauthorizedError()
        return caller

    @staticmethod
    def _require_managing_role(caller: Caller) -> None:
        if caller.role not in MANAGING_ROLES:
            raise ForbiddenError()

    def _authorize_project(self, caller: Caller, project_id: str) -> Project:
        """
        Managed-project check for mutations.

        Project managers cannot tell a missing project from someone else's:
        both are Forbidden. Super admins get NotFound for missing projects.
        """
        project = self._projects.get(project_id)
        if project is None:
            if caller.role is Role.SUPER_ADMIN:
                raise NotFoundError("project", project_id)
            raise ForbiddenError()
        if not self.scope.can_manage(caller.id, caller.role, project):
            raise ForbiddenError()
        return project

    def _load_task(self, task_id: str) -> Task:
        task = self._tasks.find_by_id(task_id) if task_id else None
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    # ---- queries ----

    def list_tasks(
        self,
        caller: Caller | None,
        filters: TaskFilters | None = None,
        pagination: Pagination | None = None,
        include_stats: bool = False,
        *,
        as_of: float | None = None,
    ) -> ServiceResult[TaskPage]:
        """
        Active tasks visible to the caller, priority-ordered and paginated.

        An explicit project_id outside the caller's scope yields an empty page,
        not an error.
        """

        def run() -> TaskPage:
            who = self._require_caller(caller)
            f = filters or TaskFilters()
            page = (pagination or Pagination(limit=self._default_page_size)).normalized(self._max_page_size)
            now = self._clock() if as_of is None else float(as_of)

            visible = self.scope.resolve_visible_projects(who.id, who.role)
            scope = visible & {f.project_id} if f.project_id else visible

            query = TaskQuery(
                project_ids=frozenset(scope),
                priority=f.priority,
                category=f.category,
                assigned_to=f.assigned_to,
                blocked_only=f.blocked,
                scheduled_before=now + self._due_soon_days * DAY_SECONDS if f.due_soon else None,
            )
            tasks, total = self._tasks.find(query, page)

            titles = self._projects.titles({t.project_id for t in tasks})
            assignees = self._users.get_many(sorted({t.assigned_to for t in tasks if t.assigned_to}))
            stats = self.stats.compute_stats(visible, now) if include_stats else None

            logger.debug(
                "list caller=%s role=%s scope=%d total=%d page=%d",
                who.id,
                who.role.value,
                len(scope),
                total,
                page.page,
            )
            return TaskPage(
                tasks=tasks,
                pagination=page,
                total=total,
                stats=stats,
                project_titles=titles,
                assignees=assignees,
            )

        return self._run("list_tasks", run)

    def get_task(self, caller: Caller | None, task_id: str) -> ServiceResult[TaskDetail]:
        """
        Single task by id with its project title, assignee and dependency
        summaries. Tasks outside the caller's scope are NotFound, and
        dependencies living in projects the caller cannot see are left out
        of the summaries (their ids stay in `dependencies`).
        """

        def run() -> TaskDetail:
            who = self._require_caller(caller)
            task = self._load_task(task_id)
            visible = self.scope.resolve_visible_projects(who.id, who.role)
            if task.project_id not in visible:
                raise NotFoundError("task", task_id)

            deps = self._tasks.find_many(task.dependencies)
            return TaskDetail(
                task=task,
                project_title=self._projects.titles([task.project_id]).get(task.project_id),
                assignee=self._users.get(task.assigned_to) if task.assigned_to else None,
                dependency_tasks=[deps[d] for d in sorted(deps) if deps[d].project_id in visible],
            )

        return self._run("get_task", run)

    # ---- mutations ----

    def create_task(self, caller: Caller | None, draft: TaskDraft) -> ServiceResult[Task]:
        def run() -> Task:
            who = self._require_caller(caller)
            self._require_managing_role(who)
            clean = draft.validated()
            self._authorize_project(who, clean.project_id)

            if clean.id is not None and self._tasks.find_by_id(clean.id) is not None:
                raise ValidationError("id", f"already exists: {clean.id}")
            task_id = clean.id or self._tasks.new_id()

            now = self._clock()
            task = Task(
                id=task_id,
                project_id=clean.project_id,
                title=clean.title,
                description=clean.description,
                status=TaskStatus.PENDING,
                priority=clean.priority,  # type: ignore[arg-type]
                category=clean.category,  # type: ignore[arg-type]
                progress=0,
                assigned_to=clean.assigned_to,
                dependencies=clean.dependencies,
                blockers=[],
                scheduled_date=clean.scheduled_date,
                estimated_start_date=clean.estimated_start_date,
                estimated_duration=clean.estimated_duration,
                created_by=who.id,
                created_at=now,
                updated_at=now,
            )

            self.guard.validate_no_self_dependency(task)
            self.guard.validate_references(task)
            self._tasks.insert(task)

            logger.info(
                "Task created id=%s project=%s by=%s priority=%s deps=%d",
                task.id,
                task.project_id,
                who.id,
                task.priority.value,
                len(task.dependencies),
            )
            return self._tasks.find_by_id(task_id) or task

        return self._run("create_task", run)

    def update_task(self, caller: Caller | None, task_id: str, patch: TaskPatch) -> ServiceResult[Task]:
        def run() -> Task:
            who = self._require_caller(caller)
            self._require_managing_role(who)
            changes = patch.changes()
            existing = self._load_task(task_id)
            self._authorize_project(who, existing.project_id)

            assignee_changed = (
                "assigned_to" in changes
                and changes["assigned_to"] is not None
                and changes["assigned_to"] != existing.assigned_to
            )
            refs = ReferenceSet(
                id=existing.id,
                assigned_to=changes["assigned_to"] if assignee_changed else None,
                dependencies=changes.get("dependencies", frozenset()),
            )
            if "dependencies" in changes:
                self.guard.validate_no_self_dependency(refs)
            self.guard.validate_references(refs)
            if "dependencies" in changes:
                self.guard.validate_no_cycle(existing.id, refs.dependencies)

            changes["updated_at"] = self._clock()
            changes["updated_by"] = who.id
            if not self._tasks.update_fields(task_id, changes):
                raise NotFoundError("task", task_id)

            logger.info("Task updated id=%s by=%s fields=%s", task_id, who.id, sorted(changes))
            return self._load_task(task_id)

        return self._run("update_task", run)

    def delete_task(self, caller: Caller | None, task_id: str) -> ServiceResult[str]:
        def run() -> str:
            who = self._require_caller(caller)
            self._require_managing_role(who)
            existing = self._load_task(task_id)
            self._authorize_project(who, existing.project_id)

            self.guard.guard_deletion(task_id)
            if not self._tasks.delete_by_id(task_id, if_unreferenced=True):
                # Lost a race: either the task is already gone or a dependent appeared.
                if self._tasks.find_by_id(task_id) is None:
                    raise NotFoundError("task", task_id)
                self.guard.guard_deletion(task_id)
                raise InfrastructureError(f"delete of task {task_id} did not apply")

            logger.info("Task deleted id=%s project=%s by=%s", task_id, existing.project_id, who.id)
            return task_id

        return self._run("delete_task", run)

    def record_progress(self, task_id: str, progress: int) -> ServiceResult[Task]:
        """System path: progress recomputation, no caller or ownership checks."""

        def run() -> Task:
            changes = TaskPatch(progress=progress).changes()
            changes["updated_at"] = self._clock()
            changes["updated_by"] = SYSTEM_ACTOR
            if not self._tasks.update_fields(task_id, changes):
                raise NotFoundError("task", task_id)
            logger.debug("Progress recorded task=%s progress=%s", task_id, changes["progress"])
            return self._load_task(task_id)

        return self._run("record_progress", run)
