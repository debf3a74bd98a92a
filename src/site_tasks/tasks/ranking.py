# src/site_tasks/tasks/ranking.py

"""
Priority ordering for task listings.

Order (total, stable across calls with unchanged data):
1. priority rank: urgent < high < medium < low < anything else
2. scheduled_date ascending, tasks without one after all dated tasks
3. created_at ascending
4. id, so equal timestamps still order deterministically

sql_order_by() renders the same order for the SQLite store so a page cut by
the database matches what sort() would produce over the full set.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from .task_models import PRIORITY_RANK, UNRANKED_PRIORITY, Task, priority_rank

SortKey = tuple[int, int, float, float, str]


def sort_key(task: Task) -> SortKey:
    has_date = task.scheduled_date is not None
    return (
        priority_rank(task.priority),
        0 if has_date else 1,
        float(task.scheduled_date) if has_date else math.inf,
        float(task.created_at),
        task.id,
    )


def compare(a: Task, b: Task) -> int:
    ka, kb = sort_key(a), sort_key(b)
    return (ka > kb) - (ka < kb)


def sort(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=sort_key)


def sql_order_by() -> str:
    cases = " ".join(
        f"WHEN '{value}' THEN {rank}" for value, rank in sorted(PRIORITY_RANK.items(), key=lambda kv: kv[1])
    )
    return (
        f"CASE priority {cases} ELSE {UNRANKED_PRIORITY} END ASC, "
        "scheduled_date IS NULL ASC, scheduled_date ASC, created_at ASC, id ASC"
    )

