# src/site_tasks/tasks/task_models.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

UNKNOWN_PROJECT_TITLE = "Unknown Project"
SYSTEM_ACTOR = "system"


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Only pending/in_progress are "active"; completed/cancelled are terminal and
    never show up in active listings or stats.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self.value]


class TaskCategory(StrEnum):
    STRUCTURAL = "structural"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    FINISHING = "finishing"
    OTHER = "other"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskCategory:
        if not raw:
            return cls.OTHER
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


class Role(StrEnum):
    CLIENT = "client"
    PROJECT_MANAGER = "project_manager"
    SUPER_ADMIN = "super_admin"


ACTIVE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
MANAGING_ROLES: frozenset[Role] = frozenset({Role.PROJECT_MANAGER, Role.SUPER_ADMIN})

# Lower rank sorts first. Anything outside the enumeration ranks last.
PRIORITY_RANK: dict[str, int] = {
    TaskPriority.URGENT.value: 1,
    TaskPriority.HIGH.value: 2,
    TaskPriority.MEDIUM.value: 3,
    TaskPriority.LOW.value: 4,
}
UNRANKED_PRIORITY = 5


def priority_rank(raw: str | None) -> int:
    return PRIORITY_RANK.get(str(raw or ""), UNRANKED_PRIORITY)


def parse_enum(enum_cls: type[StrEnum], raw: Any, field_name: str) -> Any:
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(field_name, f"must be one of: {allowed}") from None


def _representable(value: float, field_name: str) -> float:
    # Whatever is stored must render back through to_iso.
    if not math.isfinite(value):
        raise ValidationError(field_name, "must be a finite timestamp")
    try:
        datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValidationError(field_name, "is out of the supported date range") from None
    return value


def parse_timestamp(raw: Any, field_name: str) -> float | None:
    """
    Accept epoch seconds (int/float/numeric string) or an ISO-8601 string.

    Naive ISO datetimes are taken as UTC. NaN, infinities and instants
    outside years 1..9999 are rejected.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError(field_name, "must be a timestamp")
    if isinstance(raw, (int, float)):
        try:
            return _representable(float(raw), field_name)
        except OverflowError:
            raise ValidationError(field_name, "is out of the supported date range") from None
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw).strip()
        if not s:
            return None
        try:
            value = float(s)
        except ValueError:
            pass
        else:
            return _representable(value, field_name)
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(field_name, "must be epoch seconds or ISO-8601") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        ts = dt.timestamp()
    except (OverflowError, OSError, ValueError):
        raise ValidationError(field_name, "is out of the supported date range") from None
    return _representable(ts, field_name)


def to_iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat()


@dataclass(slots=True)
class Task:
    id: str
    project_id: str
    title: str
    created_by: str
    created_at: float
    updated_at: float

    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    category: TaskCategory = TaskCategory.OTHER
    progress: int = 0

    assigned_to: str | None = None
    dependencies: frozenset[str] = field(default_factory=frozenset)
    blockers: list[str] = field(default_factory=list)

    scheduled_date: float | None = None
    estimated_start_date: float | None = None
    estimated_duration: str | None = None

    updated_by: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_blocked(self) -> bool:
        return any(b for b in self.blockers)

    def to_dict(
        self,
        *,
        project_title: str | None = None,
        assignee: User | None = None,
    ) -> dict[str, Any]:
        """Wire shape used by the listing endpoints (camelCase, ISO timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "projectId": self.project_id,
            "projectTitle": project_title or UNKNOWN_PROJECT_TITLE,
            "status": self.status.value,
            "priority": self.priority.value,
            "category": self.category.value,
            "progress": self.progress,
            "assignedTo": assignee.summary() if assignee is not None else None,
            "dependencies": sorted(self.dependencies),
            "blockers": list(self.blockers),
            "scheduledDate": to_iso(self.scheduled_date),
            "estimatedStartDate": to_iso(self.estimated_start_date),
            "estimatedDuration": self.estimated_duration,
            "createdBy": self.created_by,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "updatedBy": self.updated_by,
        }


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    title: str
    client: str | None
    manager: str | None


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str
    role: Role

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True, slots=True)
class TaskQuery:
    """
    Store-level filter: a conjunction of every set predicate.

    project_ids is the visibility scope and is always applied; an empty scope
    matches nothing.
    """

    project_ids: frozenset[str]
    statuses: frozenset[TaskStatus] = ACTIVE_STATUSES
    priority: TaskPriority | None = None
    category: TaskCategory | None = None
    assigned_to: str | None = None
    blocked_only: bool = False
    scheduled_before: float | None = None
