# src/site_tasks/tasks/access.py

from __future__ import annotations

import logging

from ..core.ports import ProjectDirectory
from .task_models import MANAGING_ROLES, Project, Role

logger = logging.getLogger(__name__)


class AccessScopeResolver:
    """
    Maps a caller to the set of project ids whose tasks they may see.

    - super_admin: every project
    - project_manager: projects they manage
    - client: projects they are the client of

    Directory failures are not caught here; they surface as InfrastructureError.
    """

    def __init__(self, projects: ProjectDirectory) -> None:
        self._projects = projects

    def resolve_visible_projects(self, caller_id: str, caller_role: Role | str) -> frozenset[str]:
        role = Role(caller_role)
        if role is Role.SUPER_ADMIN:
            ids = self._projects.list_project_ids()
        elif role is Role.PROJECT_MANAGER:
            ids = self._projects.list_project_ids(manager=caller_id)
        else:
            ids = self._projects.list_project_ids(client=caller_id)
        scope = frozenset(ids)
        logger.debug("scope caller=%s role=%s projects=%d", caller_id, role.value, len(scope))
        return scope

    @staticmethod
    def can_manage(caller_id: str, caller_role: Role | str, project: Project) -> bool:
        """Whether the caller may create/update/delete tasks in `project`."""
        role = Role(caller_role)
        if role not in MANAGING_ROLES:
            return False
        if role is Role.SUPER_ADMIN:
            return True
        return project.manager is not None and project.manager == caller_id
