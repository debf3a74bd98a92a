# src/site_tasks/tasks/task_inputs.py

"""
Explicit request records for TaskQueryService.

Every option the listing and mutation endpoints recognize is a named field
here. `from_dict` accepts the camelCase wire names (and snake_case) coming from
the HTTP layer; `validated()` / `changes()` normalize and reject bad values with
ValidationError before anything touches the store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping

from ..core.errors import UnauthorizedError, ValidationError
from .task_models import (
    Role,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    parse_enum,
    parse_timestamp,
)

_UNSET: Any = object()

TITLE_MAX_LEN = 100
# SQLite INTEGER is signed 64-bit; LIMIT/OFFSET must fit.
MAX_OFFSET = 2**63 - 1
DESCRIPTION_MAX_LEN = 500

_WIRE_NAMES = {
    "projectId": "project_id",
    "assignedTo": "assigned_to",
    "scheduledDate": "scheduled_date",
    "estimatedStartDate": "estimated_start_date",
    "estimatedDuration": "estimated_duration",
    "dueSoon": "due_soon",
}


def _snake(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {_WIRE_NAMES.get(k, k): v for k, v in payload.items()}


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return False
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool):
        raise ValidationError(field_name, "must be an integer")
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(field_name, "must be an integer") from None


def _clean_optional_id(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _clean_title(raw: Any) -> str:
    title = str(raw or "").strip()
    if not title:
        raise ValidationError("title", "is required")
    if len(title) > TITLE_MAX_LEN:
        raise ValidationError("title", f"must be at most {TITLE_MAX_LEN} characters")
    return title


def _clean_description(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    if len(text) > DESCRIPTION_MAX_LEN:
        raise ValidationError("description", f"must be at most {DESCRIPTION_MAX_LEN} characters")
    return text or None


def _clean_progress(raw: Any) -> int:
    value = _as_int(raw, "progress")
    if not 0 <= value <= 100:
        raise ValidationError("progress", "must be between 0 and 100")
    return value


def _clean_id_set(raw: Any, field_name: str) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str) or not hasattr(raw, "__iter__"):
        raise ValidationError(field_name, "must be a list of ids")
    out: set[str] = set()
    for item in raw:
        s = _clean_optional_id(item)
        if s is None:
            raise ValidationError(field_name, "must not contain empty ids")
        out.add(s)
    return frozenset(out)


def _clean_blockers(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str) or not hasattr(raw, "__iter__"):
        raise ValidationError("blockers", "must be a list of strings")
    out: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ValidationError("blockers", "must be a list of strings")
        if item.strip():
            out.append(item.strip())
    return out


def _clean_duration(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


@dataclass(frozen=True, slots=True)
class Caller:
    id: str
    role: Role

    @classmethod
    def parse(cls, user_id: str | None, role: str | Role | None) -> Caller:
        """Build a caller from an already-authenticated session. Missing/unknown -> Unauthorized."""
        uid = (user_id or "").strip()
        if not uid or not role:
            raise UnauthorizedError()
        try:
            return cls(id=uid, role=Role(str(role).strip().lower()))
        except ValueError:
            raise UnauthorizedError(f"unknown role: {role}") from None


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int = 1
    limit: int = 20

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], *, default_limit: int = 20) -> Pagination:
        page = params.get("page")
        limit = params.get("limit")
        return cls(
            page=1 if page in (None, "") else _as_int(page, "page"),
            limit=default_limit if limit in (None, "") else _as_int(limit, "limit"),
        )

    def normalized(self, max_limit: int) -> Pagination:
        if self.page < 1:
            raise ValidationError("page", "must be >= 1")
        if self.limit < 1:
            raise ValidationError("limit", "must be >= 1")
        page = replace(self, limit=min(self.limit, max(1, int(max_limit))))
        if page.offset > MAX_OFFSET:
            raise ValidationError("page", "is too large")
        return page

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pages(self, total: int) -> int:
        return math.ceil(total / self.limit) if total > 0 else 0


@dataclass(frozen=True, slots=True)
class TaskFilters:
    project_id: str | None = None
    priority: TaskPriority | None = None
    category: TaskCategory | None = None
    assigned_to: str | None = None
    blocked: bool = False
    due_soon: bool = False

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> TaskFilters:
        p = _snake(params)
        priority = p.get("priority")
        category = p.get("category")
        return cls(
            project_id=_clean_optional_id(p.get("project_id")),
            priority=parse_enum(TaskPriority, priority, "priority") if priority else None,
            category=parse_enum(TaskCategory, category, "category") if category else None,
            assigned_to=_clean_optional_id(p.get("assigned_to")),
            blocked=_as_bool(p.get("blocked")),
            due_soon=_as_bool(p.get("due_soon")),
        )


@dataclass(frozen=True, slots=True)
class TaskDraft:
    """Fields accepted by create. `id` may be pre-assigned by the caller."""

    project_id: str
    title: str
    description: str | None = None
    priority: TaskPriority | str = TaskPriority.MEDIUM
    category: TaskCategory | str = TaskCategory.OTHER
    assigned_to: str | None = None
    dependencies: frozenset[str] = field(default_factory=frozenset)
    scheduled_date: Any = None
    estimated_start_date: Any = None
    estimated_duration: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TaskDraft:
        p = _snake(payload)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(p) - known)
        if unknown:
            raise ValidationError(unknown[0], "unknown field")
        if not p.get("project_id"):
            raise ValidationError("project_id", "is required")
        kwargs = {k: v for k, v in p.items() if v is not None}
        kwargs.setdefault("title", "")
        return cls(**kwargs)

    def validated(self) -> TaskDraft:
        project_id = _clean_optional_id(self.project_id)
        if project_id is None:
            raise ValidationError("project_id", "is required")
        return replace(
            self,
            project_id=project_id,
            title=_clean_title(self.title),
            description=_clean_description(self.description),
            priority=parse_enum(TaskPriority, self.priority or TaskPriority.MEDIUM, "priority"),
            category=parse_enum(TaskCategory, self.category or TaskCategory.OTHER, "category"),
            assigned_to=_clean_optional_id(self.assigned_to),
            dependencies=_clean_id_set(self.dependencies, "dependencies"),
            scheduled_date=parse_timestamp(self.scheduled_date, "scheduled_date"),
            estimated_start_date=parse_timestamp(self.estimated_start_date, "estimated_start_date"),
            estimated_duration=_clean_duration(self.estimated_duration),
            id=_clean_optional_id(self.id),
        )


@dataclass(frozen=True, slots=True)
class TaskPatch:
    """
    Partial update. Fields left at the unset sentinel are not touched;
    an explicit None clears an optional field.
    """

    title: Any = _UNSET
    description: Any = _UNSET
    status: Any = _UNSET
    priority: Any = _UNSET
    category: Any = _UNSET
    progress: Any = _UNSET
    assigned_to: Any = _UNSET
    dependencies: Any = _UNSET
    blockers: Any = _UNSET
    scheduled_date: Any = _UNSET
    estimated_start_date: Any = _UNSET
    estimated_duration: Any = _UNSET

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TaskPatch:
        p = _snake(payload)
        for immutable in ("id", "project_id"):
            if immutable in p:
                raise ValidationError(immutable, "is immutable")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(p) - known)
        if unknown:
            raise ValidationError(unknown[0], "unknown field")
        return cls(**p)

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not _UNSET

    def changes(self) -> dict[str, Any]:
        """Validated column -> value mapping for every field that was set."""
        cleaners = {
            "title": _clean_title,
            "description": _clean_description,
            "status": lambda v: parse_enum(TaskStatus, v, "status"),
            "priority": lambda v: parse_enum(TaskPriority, v, "priority"),
            "category": lambda v: parse_enum(TaskCategory, v, "category"),
            "progress": _clean_progress,
            "assigned_to": _clean_optional_id,
            "dependencies": lambda v: _clean_id_set(v, "dependencies"),
            "blockers": _clean_blockers,
            "scheduled_date": lambda v: parse_timestamp(v, "scheduled_date"),
            "estimated_start_date": lambda v: parse_timestamp(v, "estimated_start_date"),
            "estimated_duration": _clean_duration,
        }
        out: dict[str, Any] = {}
        for f in fields(self):
            raw = getattr(self, f.name)
            if raw is _UNSET:
                continue
            if raw is None and f.name in ("status", "priority", "category", "progress", "title"):
                raise ValidationError(f.name, "cannot be cleared")
            out[f.name] = cleaners[f.name](raw)
        return out
