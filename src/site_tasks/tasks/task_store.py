# src/site_tasks/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from ..core.errors import InfrastructureError, ValidationError
from ..core.ports import PageWindow
from .ranking import sql_order_by
from .task_models import (
    Task,
    TaskCategory,
    TaskPriority,
    TaskQuery,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Columns update_fields may write. Dependencies live in their own table.
_UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "category",
        "progress",
        "assigned_to",
        "blockers",
        "scheduled_date",
        "estimated_start_date",
        "estimated_duration",
        "updated_at",
        "updated_by",
    }
)


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Every sqlite3 failure surfaces as InfrastructureError. The connection
    timeout bounds how long a call may wait on a locked database.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except InfrastructureError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _session(self, op: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            logger.error("TaskStore %s: cannot open db=%s: %s", op, self._db_path, e)
            raise InfrastructureError(f"task store unavailable: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            logger.exception("TaskStore %s failed", op)
            raise InfrastructureError(f"task store {op} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session("schema") as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    category TEXT NOT NULL DEFAULT 'other',
                    progress INTEGER NOT NULL DEFAULT 0,
                    assigned_to TEXT,
                    blockers TEXT NOT NULL DEFAULT '[]',
                    blocker_count INTEGER NOT NULL DEFAULT 0,
                    scheduled_date REAL,
                    estimated_start_date REAL,
                    estimated_duration TEXT,
                    created_by TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    updated_by TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    depends_on TEXT NOT NULL,
                    PRIMARY KEY (task_id, depends_on)
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("category", "TEXT NOT NULL DEFAULT 'other'")
            add_col("blockers", "TEXT NOT NULL DEFAULT '[]'")
            add_col("blocker_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("estimated_start_date", "REAL")
            add_col("estimated_duration", "TEXT")
            add_col("updated_by", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project_status ON tasks(project_id, status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_assignee ON tasks(assigned_to)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_category ON tasks(category)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_scheduled ON tasks(scheduled_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_deps_target ON task_dependencies(depends_on)")

            conn.commit()

    @staticmethod
    def _blockers_to_str(blockers: list[str] | None) -> str:
        return json.dumps(list(blockers or []), ensure_ascii=False)

    @staticmethod
    def _str_to_blockers(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Unreadable blockers payload; treating as empty.")
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    @staticmethod
    def _row_to_task(row: sqlite3.Row, dependencies: frozenset[str]) -> Task:
        return Task(
            id=str(row["id"]),
            project_id=str(row["project_id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            status=TaskStatus.from_db(row["status"]),
            priority=TaskPriority.from_db(row["priority"]),
            category=TaskCategory.from_db(row["category"]),
            progress=int(row["progress"] or 0),
            assigned_to=row["assigned_to"],
            dependencies=dependencies,
            blockers=TaskStore._str_to_blockers(row["blockers"]),
            scheduled_date=float(row["scheduled_date"]) if row["scheduled_date"] is not None else None,
            estimated_start_date=(
                float(row["estimated_start_date"]) if row["estimated_start_date"] is not None else None
            ),
            estimated_duration=row["estimated_duration"],
            created_by=str(row["created_by"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            updated_by=row["updated_by"],
        )

    @staticmethod
    def _load_dependencies(conn: sqlite3.Connection, task_ids: list[str]) -> dict[str, frozenset[str]]:
        if not task_ids:
            return {}
        cur = conn.execute(
            f"SELECT task_id, depends_on FROM task_dependencies WHERE task_id IN ({_placeholders(len(task_ids))})",
            task_ids,
        )
        acc: dict[str, set[str]] = {}
        for row in cur.fetchall():
            acc.setdefault(row["task_id"], set()).add(row["depends_on"])
        return {k: frozenset(v) for k, v in acc.items()}

    def _rows_to_tasks(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Task]:
        deps = self._load_dependencies(conn, [r["id"] for r in rows])
        return [self._row_to_task(r, deps.get(r["id"], frozenset())) for r in rows]

    @staticmethod
    def _where(query: TaskQuery) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        scope = sorted(query.project_ids)
        clauses.append(f"project_id IN ({_placeholders(len(scope))})")
        params.extend(scope)

        statuses = sorted(s.value for s in query.statuses)
        clauses.append(f"status IN ({_placeholders(len(statuses))})")
        params.extend(statuses)

        if query.priority is not None:
            clauses.append("priority = ?")
            params.append(query.priority.value)
        if query.category is not None:
            clauses.append("category = ?")
            params.append(query.category.value)
        if query.assigned_to is not None:
            clauses.append("assigned_to = ?")
            params.append(query.assigned_to)
        if query.blocked_only:
            clauses.append("blocker_count > 0")
        if query.scheduled_before is not None:
            clauses.append("scheduled_date IS NOT NULL AND scheduled_date <= ?")
            params.append(float(query.scheduled_before))

        return " AND ".join(clauses), params

    # ---- public API ----

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def count_tasks(self) -> int:
        with self._session("count") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def find(self, query: TaskQuery, pagination: PageWindow | None = None) -> tuple[list[Task], int]:
        """
        Tasks matching `query`, in ranking order, plus the total match count.

        pagination=None returns the full matching set (used by stats).
        """
        if not query.project_ids or not query.statuses:
            return [], 0

        where, params = self._where(query)
        sql = f"SELECT * FROM tasks WHERE {where} ORDER BY {sql_order_by()}"
        page_params = list(params)
        if pagination is not None:
            sql += " LIMIT ? OFFSET ?"
            page_params.extend([int(pagination.limit), int(pagination.offset)])

        with self._session("find") as conn:
            rows = conn.execute(sql, page_params).fetchall()
            if pagination is None:
                total = len(rows)
            else:
                (total,) = conn.execute(f"SELECT COUNT(*) FROM tasks WHERE {where}", params).fetchone()
            tasks = self._rows_to_tasks(conn, rows)
        logger.debug("find scope=%d matched=%d returned=%d", len(query.project_ids), total, len(tasks))
        return tasks, int(total)

    def find_by_id(self, task_id: str) -> Task | None:
        with self._session("find_by_id") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                return None
            return self._rows_to_tasks(conn, [row])[0]

    def find_many(self, task_ids: Iterable[str]) -> dict[str, Task]:
        ids = sorted(set(task_ids))
        if not ids:
            return {}
        with self._session("find_many") as conn:
            rows = conn.execute(
                f"SELECT * FROM tasks WHERE id IN ({_placeholders(len(ids))})", ids
            ).fetchall()
            return {t.id: t for t in self._rows_to_tasks(conn, rows)}

    def existing_ids(self, task_ids: Iterable[str]) -> set[str]:
        ids = sorted(set(task_ids))
        if not ids:
            return set()
        with self._session("existing_ids") as conn:
            rows = conn.execute(
                f"SELECT id FROM tasks WHERE id IN ({_placeholders(len(ids))})", ids
            ).fetchall()
            return {str(r["id"]) for r in rows}

    def insert(self, task: Task) -> str:
        """Insert a task and its dependency edges in one transaction."""
        with self._session("insert") as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO tasks(
                        id, project_id, title, description,
                        status, priority, category, progress,
                        assigned_to, blockers, blocker_count,
                        scheduled_date, estimated_start_date, estimated_duration,
                        created_by, created_at, updated_at, updated_by
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task.id,
                        task.project_id,
                        task.title,
                        task.description,
                        task.status.value,
                        task.priority.value,
                        task.category.value,
                        int(task.progress),
                        task.assigned_to,
                        self._blockers_to_str(task.blockers),
                        len(task.blockers),
                        task.scheduled_date,
                        task.estimated_start_date,
                        task.estimated_duration,
                        task.created_by,
                        task.created_at,
                        task.updated_at,
                        task.updated_by,
                    ),
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                raise ValidationError("id", f"already exists: {task.id}") from None
            conn.executemany(
                "INSERT INTO task_dependencies(task_id, depends_on) VALUES (?, ?)",
                [(task.id, dep) for dep in sorted(task.dependencies)],
            )
            conn.commit()
        logger.debug(
            "Task inserted id=%s project=%s priority=%s deps=%d",
            task.id,
            task.project_id,
            task.priority.value,
            len(task.dependencies),
        )
        return task.id

    def update_fields(self, task_id: str, fields: dict[str, Any]) -> bool:
        """
        Write the given columns (and replace dependency edges if present).

        Returns False if the task does not exist. Unknown keys are a programming error.
        """
        unknown = set(fields) - _UPDATABLE_COLUMNS - {"dependencies"}
        if unknown:
            raise KeyError(f"not updatable: {sorted(unknown)}")

        sets: list[str] = []
        params: list[Any] = []
        for name in sorted(set(fields) & _UPDATABLE_COLUMNS):
            value = fields[name]
            if name == "blockers":
                sets.append("blockers = ?")
                params.append(self._blockers_to_str(value))
                sets.append("blocker_count = ?")
                params.append(len(value or []))
                continue
            if isinstance(value, (TaskStatus, TaskPriority, TaskCategory)):
                value = value.value
            sets.append(f"{name} = ?")
            params.append(value)

        with self._session("update_fields") as conn:
            if sets:
                cur = conn.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", (*params, task_id))
                found = cur.rowcount == 1
            else:
                found = conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone() is not None
            if not found:
                conn.rollback()
                return False

            if "dependencies" in fields:
                conn.execute("DELETE FROM task_dependencies WHERE task_id = ?", (task_id,))
                conn.executemany(
                    "INSERT INTO task_dependencies(task_id, depends_on) VALUES (?, ?)",
                    [(task_id, dep) for dep in sorted(fields["dependencies"] or ())],
                )
            conn.commit()
        return True

    def delete_by_id(self, task_id: str, *, if_unreferenced: bool = False) -> bool:
        """
        Delete one task. Its own dependency edges go with it (ON DELETE CASCADE).

        if_unreferenced=True makes the delete a single statement that only
        succeeds while no other task depends on this one, which closes the
        window between counting dependents and deleting.
        """
        sql = "DELETE FROM tasks WHERE id = ?"
        params: tuple[Any, ...] = (task_id,)
        if if_unreferenced:
            sql += " AND NOT EXISTS (SELECT 1 FROM task_dependencies WHERE depends_on = ?)"
            params = (task_id, task_id)

        with self._session("delete") as conn:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount == 1

    def count_dependents(self, task_id: str) -> int:
        with self._session("count_dependents") as conn:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM task_dependencies WHERE depends_on = ?", (task_id,)
            ).fetchone()
            return int(n)

    def dependency_map(self, task_ids: Iterable[str]) -> dict[str, frozenset[str]]:
        ids = sorted(set(task_ids))
        with self._session("dependency_map") as conn:
            return self._load_dependencies(conn, ids)
