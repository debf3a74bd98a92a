# src/site_tasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete stores into TaskQueryService and AppState.

No component reaches for a global store; everything gets its handle here.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..directory.store import ProjectDirectoryStore, UserDirectoryStore
from ..tasks.task_inputs import Caller
from ..tasks.task_service import TaskQueryService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, caller: Caller | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    timeout = float(getattr(settings, "store_timeout_seconds", 5.0))
    task_store = TaskStore(settings.db_path, timeout=timeout)
    projects = ProjectDirectoryStore(settings.db_path, timeout=timeout)
    users = UserDirectoryStore(settings.db_path, timeout=timeout)

    service = TaskQueryService(task_store, projects, users, settings=settings)
    logger.debug("State wired db=%s caller=%s", settings.db_path, caller.id if caller else None)

    return AppState(
        settings=settings,
        task_store=task_store,
        projects=projects,
        users=users,
        service=service,
        caller=caller,
    )
