"""
Task subsystem.

Components:
- task_models.py: data structures (Task, enums, TaskQuery)
- task_inputs.py: validated request records (Caller, TaskFilters, Pagination, TaskDraft, TaskPatch)
- task_store.py: SQLite-backed storage behind the TaskRepo port
- access.py: caller -> visible project scope
- dependency_guard.py: reference, self-dependency, cycle and deletion checks
- ranking.py: the priority order every listing uses
- stats.py: dashboard statistics over the visible active set
- task_service.py: TaskQueryService, the entry point that composes the rest
"""
