# src/site_tasks/core/errors.py

"""
Error taxonomy for the task subsystem.

Components raise these; TaskQueryService catches them and hands them back as
ServiceResult errors. Anything that is not a TaskError is an unexpected fault
and propagates.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INVALID_REFERENCE = "invalid_reference"
    SELF_DEPENDENCY = "self_dependency"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    HAS_DEPENDENTS = "has_dependents"
    INFRASTRUCTURE = "infrastructure"


class TaskError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.kind.value, "message": self.message}
        out.update(self.details())
        return out


class UnauthorizedError(TaskError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)


class ForbiddenError(TaskError):
    """Caller is known but may not perform the mutation. Never says why."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self) -> None:
        super().__init__("not permitted")


class NotFoundError(TaskError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}


class ValidationError(TaskError):
    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidReferenceError(TaskError):
    kind = ErrorKind.INVALID_REFERENCE

    def __init__(self, field: str, ref_id: str) -> None:
        super().__init__(f"{field} references a missing record: {ref_id}")
        self.field = field
        self.ref_id = ref_id

    def details(self) -> dict[str, Any]:
        return {"field": self.field, "id": self.ref_id}


class SelfDependencyError(TaskError):
    kind = ErrorKind.SELF_DEPENDENCY

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task cannot depend on itself: {task_id}")
        self.task_id = task_id

    def details(self) -> dict[str, Any]:
        return {"id": self.task_id}


class CircularDependencyError(TaskError):
    kind = ErrorKind.CIRCULAR_DEPENDENCY

    def __init__(self, path: list[str]) -> None:
        super().__init__("dependency cycle: " + " -> ".join(path))
        self.path = list(path)

    def details(self) -> dict[str, Any]:
        return {"path": list(self.path)}


class HasDependentsError(TaskError):
    kind = ErrorKind.HAS_DEPENDENTS

    def __init__(self, task_id: str, count: int) -> None:
        super().__init__(f"{count} task(s) depend on this task")
        self.task_id = task_id
        self.count = int(count)

    def details(self) -> dict[str, Any]:
        return {"id": self.task_id, "count": self.count}


class InfrastructureError(TaskError):
    """Store unreachable, locked past the timeout, or otherwise failing. Safe to retry."""

    kind = ErrorKind.INFRASTRUCTURE
    retryable = True
