# src/site_tasks/directory/store.py

"""
SQLite-backed project and user directories.

In the full platform these records belong to other services; the task core
only reads them through the ProjectDirectory / UserDirectory ports. These
implementations back the CLI and the tests, and offer upserts for seeding.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path

from ..core.errors import InfrastructureError
from ..tasks.task_models import Project, Role, User

logger = logging.getLogger(__name__)


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


class _SqliteDirectory:
    def __init__(self, db_path: str | Path, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _session(self, op: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise InfrastructureError(f"directory unavailable: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("%s %s failed", type(self).__name__, op)
            raise InfrastructureError(f"directory {op} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session("schema") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    client TEXT,
                    manager TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    email TEXT NOT NULL DEFAULT '',
                    role TEXT NOT NULL DEFAULT 'client'
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_projects_manager ON projects(manager)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_projects_client ON projects(client)")
            conn.commit()


class ProjectDirectoryStore(_SqliteDirectory):
    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            client=row["client"],
            manager=row["manager"],
        )

    def upsert(self, project: Project) -> None:
        with self._session("upsert") as conn:
            conn.execute(
                """
                INSERT INTO projects(id, title, client, manager) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    client = excluded.client,
                    manager = excluded.manager
                """,
                (project.id, project.title, project.client, project.manager),
            )
            conn.commit()

    def get(self, project_id: str) -> Project | None:
        with self._session("get") as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            return self._row_to_project(row) if row else None

    def list_project_ids(self, *, manager: str | None = None, client: str | None = None) -> list[str]:
        clauses: list[str] = []
        params: list[str] = []
        if manager is not None:
            clauses.append("manager = ?")
            params.append(manager)
        if client is not None:
            clauses.append("client = ?")
            params.append(client)
        sql = "SELECT id FROM projects"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        with self._session("list_project_ids") as conn:
            return [str(r["id"]) for r in conn.execute(sql + " ORDER BY id", params).fetchall()]

    def titles(self, project_ids: Iterable[str]) -> dict[str, str]:
        ids = sorted(set(project_ids))
        if not ids:
            return {}
        with self._session("titles") as conn:
            rows = conn.execute(
                f"SELECT id, title FROM projects WHERE id IN ({_placeholders(len(ids))})", ids
            ).fetchall()
            return {str(r["id"]): str(r["title"] or "") for r in rows}


class UserDirectoryStore(_SqliteDirectory):
    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        try:
            role = Role(row["role"])
        except ValueError:
            role = Role.CLIENT
        return User(id=str(row["id"]), name=str(row["name"] or ""), email=str(row["email"] or ""), role=role)

    def upsert(self, user: User) -> None:
        with self._session("upsert") as conn:
            conn.execute(
                """
                INSERT INTO users(id, name, email, role) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    email = excluded.email,
                    role = excluded.role
                """,
                (user.id, user.name, user.email, user.role.value),
            )
            conn.commit()

    def exists(self, user_id: str) -> bool:
        with self._session("exists") as conn:
            return conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is not None

    def get(self, user_id: str) -> User | None:
        with self._session("get") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_many(self, user_ids: Sequence[str]) -> dict[str, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        with self._session("get_many") as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({_placeholders(len(ids))})", ids
            ).fetchall()
            return {str(r["id"]): self._row_to_user(r) for r in rows}
