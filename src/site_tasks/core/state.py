# src/site_tasks/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_inputs import Caller
from ..tasks.task_service import TaskQueryService
from .ports import ProjectDirectory, TaskRepo, UserDirectory


@dataclass
class AppState:
    """Everything a console session needs, wired once by the composition root."""

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskRepo
    projects: ProjectDirectory
    users: UserDirectory
    service: TaskQueryService

    caller: Caller | None = None
