# src/site_tasks/tasks/stats.py

"""
Dashboard statistics over the caller's visible active tasks.

This is a read model separate from the paginated listing: counts are taken over
the whole visible active set, never over a page.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.ports import ProjectDirectory, TaskRepo
from .task_models import (
    UNKNOWN_PROJECT_TITLE,
    Task,
    TaskCategory,
    TaskPriority,
    TaskQuery,
    TaskStatus,
    to_iso,
)

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400.0


@dataclass(frozen=True, slots=True)
class ProjectBreakdown:
    project_id: str
    project_title: str
    pending_count: int
    urgent_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "projectTitle": self.project_title,
            "pendingCount": self.pending_count,
            "urgentCount": self.urgent_count,
        }


@dataclass(frozen=True, slots=True)
class UpcomingDeadline:
    id: str
    title: str
    scheduled_date: float
    project_title: str
    priority: TaskPriority

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "scheduledDate": to_iso(self.scheduled_date),
            "projectTitle": self.project_title,
            "priority": self.priority.value,
        }


@dataclass(frozen=True, slots=True)
class TaskStats:
    total_pending: int = 0
    urgent: int = 0
    high_priority: int = 0
    in_progress: int = 0
    due_soon: int = 0
    overdue: int = 0
    blocked_tasks: int = 0
    by_category: dict[str, int] = field(default_factory=lambda: {c.value: 0 for c in TaskCategory})
    by_project: list[ProjectBreakdown] = field(default_factory=list)
    upcoming_deadlines: list[UpcomingDeadline] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPending": self.total_pending,
            "urgent": self.urgent,
            "highPriority": self.high_priority,
            "inProgress": self.in_progress,
            "dueSoon": self.due_soon,
            "overdue": self.overdue,
            "blockedTasks": self.blocked_tasks,
            "byCategory": dict(self.by_category),
            "byProject": [p.to_dict() for p in self.by_project],
            "upcomingDeadlines": [u.to_dict() for u in self.upcoming_deadlines],
        }


def summarize(
    tasks: Iterable[Task],
    project_titles: Mapping[str, str],
    *,
    as_of: float,
    due_soon_days: float = 7,
    upcoming_window_days: float = 14,
    upcoming_limit: int = 10,
) -> TaskStats:
    """Pure aggregation over an already scoped, already active task set."""
    items = list(tasks)
    due_soon_until = as_of + due_soon_days * DAY_SECONDS
    upcoming_until = as_of + upcoming_window_days * DAY_SECONDS

    def title_of(project_id: str) -> str:
        return project_titles.get(project_id) or UNKNOWN_PROJECT_TITLE

    dated = [t for t in items if t.scheduled_date is not None]

    # Every category is reported, zero or not, in enumeration order.
    counted = Counter(t.category.value for t in items)
    by_category = {c.value: counted.get(c.value, 0) for c in TaskCategory}

    pending_per_project: Counter[str] = Counter(t.project_id for t in items)
    urgent_per_project: Counter[str] = Counter(
        t.project_id for t in items if t.priority is TaskPriority.URGENT
    )
    by_project = sorted(
        (
            ProjectBreakdown(
                project_id=pid,
                project_title=title_of(pid),
                pending_count=count,
                urgent_count=urgent_per_project.get(pid, 0),
            )
            for pid, count in pending_per_project.items()
            if count > 0
        ),
        key=lambda p: (-p.urgent_count, -p.pending_count, p.project_id),
    )

    upcoming = sorted(
        (t for t in dated if as_of <= t.scheduled_date <= upcoming_until),  # type: ignore[operator]
        key=lambda t: (t.scheduled_date, t.created_at, t.id),
    )[: max(0, int(upcoming_limit))]

    return TaskStats(
        total_pending=len(items),
        urgent=sum(1 for t in items if t.priority is TaskPriority.URGENT),
        high_priority=sum(1 for t in items if t.priority is TaskPriority.HIGH),
        in_progress=sum(1 for t in items if t.status is TaskStatus.IN_PROGRESS),
        due_soon=sum(1 for t in dated if as_of <= t.scheduled_date <= due_soon_until),  # type: ignore[operator]
        overdue=sum(1 for t in dated if t.scheduled_date < as_of),  # type: ignore[operator]
        blocked_tasks=sum(1 for t in items if t.is_blocked),
        by_category=by_category,
        by_project=by_project,
        upcoming_deadlines=[
            UpcomingDeadline(
                id=t.id,
                title=t.title,
                scheduled_date=float(t.scheduled_date),  # type: ignore[arg-type]
                project_title=title_of(t.project_id),
                priority=t.priority,
            )
            for t in upcoming
        ],
    )


class StatsAggregator:
    def __init__(
        self,
        tasks: TaskRepo,
        projects: ProjectDirectory,
        *,
        due_soon_days: float = 7,
        upcoming_window_days: float = 14,
        upcoming_limit: int = 10,
    ) -> None:
        self._tasks = tasks
        self._projects = projects
        self._due_soon_days = due_soon_days
        self._upcoming_window_days = upcoming_window_days
        self._upcoming_limit = upcoming_limit

    def compute_stats(self, scope: Iterable[str], as_of: float | None = None) -> TaskStats:
        scope_set = frozenset(scope)
        if as_of is None:
            as_of = time.time()
        if not scope_set:
            return TaskStats()

        active, _ = self._tasks.find(TaskQuery(project_ids=scope_set), None)
        active = [t for t in active if t.is_active and t.project_id in scope_set]
        titles = self._projects.titles({t.project_id for t in active})

        stats = summarize(
            active,
            titles,
            as_of=as_of,
            due_soon_days=self._due_soon_days,
            upcoming_window_days=self._upcoming_window_days,
            upcoming_limit=self._upcoming_limit,
        )
        logger.debug(
            "stats scope=%d active=%d overdue=%d blocked=%d",
            len(scope_set),
            stats.total_pending,
            stats.overdue,
            stats.blocked_tasks,
        )
        return stats
