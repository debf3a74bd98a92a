# tests/test_task_inputs.py

from __future__ import annotations

import pytest

from site_tasks.core.errors import UnauthorizedError, ValidationError
from site_tasks.tasks.task_inputs import Caller, Pagination, TaskDraft, TaskFilters, TaskPatch
from site_tasks.tasks.task_models import Role, TaskCategory, TaskPriority, parse_timestamp


def test_caller_parse() -> None:
    assert Caller.parse(" pm1 ", "Project_Manager") == Caller(id="pm1", role=Role.PROJECT_MANAGER)
    with pytest.raises(UnauthorizedError):
        Caller.parse("", "client")
    with pytest.raises(UnauthorizedError):
        Caller.parse("u1", None)
    with pytest.raises(UnauthorizedError):
        Caller.parse("u1", "root")


def test_pagination_from_wire_params() -> None:
    assert Pagination.from_dict({}, default_limit=15) == Pagination(page=1, limit=15)
    assert Pagination.from_dict({"page": "3", "limit": "5"}) == Pagination(page=3, limit=5)
    assert Pagination(page=3, limit=5).offset == 10
    assert Pagination(limit=5).pages(11) == 3
    assert Pagination(limit=5).pages(0) == 0

    with pytest.raises(ValidationError):
        Pagination.from_dict({"page": "two"})
    with pytest.raises(ValidationError):
        Pagination(page=1, limit=0).normalized(100)


def test_filters_from_wire_params() -> None:
    f = TaskFilters.from_dict(
        {"projectId": "p1", "priority": "URGENT", "category": "plumbing", "blocked": "true", "dueSoon": "1"}
    )
    assert f == TaskFilters(
        project_id="p1",
        priority=TaskPriority.URGENT,
        category=TaskCategory.PLUMBING,
        blocked=True,
        due_soon=True,
    )
    assert TaskFilters.from_dict({"blocked": "no", "projectId": "  "}) == TaskFilters()


def test_draft_from_dict_and_validation() -> None:
    draft = TaskDraft.from_dict(
        {
            "projectId": "p1",
            "title": " Wire panel ",
            "category": "electrical",
            "dependencies": ["a", "b", "a"],
            "scheduledDate": "2027-01-15T08:00:00Z",
        }
    ).validated()

    assert draft.title == "Wire panel"
    assert draft.category is TaskCategory.ELECTRICAL
    assert draft.priority is TaskPriority.MEDIUM
    assert draft.dependencies == frozenset({"a", "b"})
    assert draft.scheduled_date == parse_timestamp("2027-01-15T08:00:00+00:00", "scheduled_date")


def test_draft_rejects_missing_and_unknown_fields() -> None:
    with pytest.raises(ValidationError) as exc:
        TaskDraft.from_dict({"title": "x"})
    assert exc.value.field == "project_id"

    with pytest.raises(ValidationError) as exc:
        TaskDraft.from_dict({"projectId": "p1", "title": "x", "colour": "red"})
    assert exc.value.field == "colour"

    with pytest.raises(ValidationError) as exc:
        TaskDraft(project_id="p1", title="x", description="d" * 501).validated()
    assert exc.value.field == "description"

    with pytest.raises(ValidationError):
        TaskDraft(project_id="p1", title="x", dependencies="abc").validated()  # type: ignore[arg-type]


def test_patch_tracks_only_set_fields() -> None:
    patch = TaskPatch.from_dict({"title": "New", "assignedTo": None, "blockers": [" rain ", ""]})
    assert patch.is_set("title")
    assert not patch.is_set("priority")
    assert patch.changes() == {"title": "New", "assigned_to": None, "blockers": ["rain"]}
    assert TaskPatch().changes() == {}


def test_patch_rejects_immutable_and_uncleared_fields() -> None:
    with pytest.raises(ValidationError) as exc:
        TaskPatch.from_dict({"projectId": "p2"})
    assert exc.value.message == "project_id: is immutable"

    with pytest.raises(ValidationError):
        TaskPatch.from_dict({"id": "other"})

    with pytest.raises(ValidationError) as exc:
        TaskPatch(priority=None).changes()
    assert exc.value.field == "priority"

    with pytest.raises(ValidationError):
        TaskPatch(progress=-1).changes()


def test_parse_timestamp_forms() -> None:
    assert parse_timestamp(None, "d") is None
    assert parse_timestamp("", "d") is None
    assert parse_timestamp(100, "d") == 100.0
    assert parse_timestamp("1800000000", "d") == 1_800_000_000.0
    assert parse_timestamp("1970-01-01T00:01:00", "d") == 60.0
    with pytest.raises(ValidationError):
        parse_timestamp(True, "d")
    with pytest.raises(ValidationError):
        parse_timestamp("next tuesday", "d")


def test_parse_timestamp_rejects_unrenderable_values() -> None:
    for bad in (float("nan"), float("inf"), -float("inf"), "nan", "inf", 1e12, -1e12, 10**400):
        with pytest.raises(ValidationError) as exc:
            parse_timestamp(bad, "scheduled_date")
        assert exc.value.field == "scheduled_date"
    assert parse_timestamp("9999-12-31T00:00:00Z", "d") is not None


def test_pagination_offset_must_fit_sqlite_integer() -> None:
    with pytest.raises(ValidationError) as exc:
        Pagination(page=10**19, limit=10).normalized(100)
    assert exc.value.field == "page"
    # The cap is applied before the offset check.
    assert Pagination(page=2**50, limit=10_000).normalized(100).limit == 100
