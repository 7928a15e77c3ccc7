"""SQLite-backed project store with caller-scoped finders."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from nerve_agent.store.slugs import unique_slug
from nerve_agent.types import SprintDraft

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    client_name TEXT NOT NULL,
    description TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS sprints (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    number INTEGER NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    estimated_hours REAL NOT NULL DEFAULT 0,
    UNIQUE (project_id, number)
);
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sprint_id INTEGER NOT NULL REFERENCES sprints(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    estimated_hours REAL NOT NULL,
    category TEXT,
    status TEXT NOT NULL DEFAULT 'todo'
);
CREATE TABLE IF NOT EXISTS folders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    UNIQUE (user_id, name)
);
CREATE TABLE IF NOT EXISTS notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
    folder_id INTEGER REFERENCES folders(id) ON DELETE SET NULL,
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    content TEXT NOT NULL,
    tags TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectStore:
    """Domain store for projects, sprints, tasks, folders and notes.

    Every read takes the caller's `user_id` and filters on it. Writes go
    through `unit_of_work`, which opens one connection, starts an immediate
    (write-locking) transaction, and commits or rolls back as a whole.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        with closing(self._connect()) as conn:
            conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def unit_of_work(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one transaction; commit only on success."""

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        with closing(self._connect()) as conn:
            yield conn

    # -- projects -----------------------------------------------------------

    def list_projects(self, user_id: str) -> list[dict[str, Any]]:
        with self.reader() as conn:
            rows = conn.execute(
                """
                SELECT p.name, p.slug, p.client_name, p.status,
                       (SELECT COUNT(*) FROM sprints s WHERE s.project_id = p.id) AS sprint_count
                FROM projects p
                WHERE p.user_id = ?
                ORDER BY p.updated_at DESC, p.id DESC
                """,
                (user_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def find_project(
        self, conn: sqlite3.Connection, user_id: str, slug: str
    ) -> sqlite3.Row | None:
        return conn.execute(
            "SELECT * FROM projects WHERE slug = ? AND user_id = ?",
            (slug, user_id),
        ).fetchone()

    def get_project(self, user_id: str, slug: str) -> dict[str, Any] | None:
        """Return the project with nested sprints and tasks, or None."""

        with self.reader() as conn:
            project = self.find_project(conn, user_id, slug)
            if project is None:
                return None
            sprints = conn.execute(
                "SELECT * FROM sprints WHERE project_id = ? ORDER BY number ASC",
                (project["id"],),
            ).fetchall()
            sprint_payloads = []
            for sprint in sprints:
                tasks = conn.execute(
                    """
                    SELECT position, title, description, estimated_hours, category, status
                    FROM tasks WHERE sprint_id = ? ORDER BY position ASC
                    """,
                    (sprint["id"],),
                ).fetchall()
                sprint_payloads.append(
                    {
                        "number": sprint["number"],
                        "name": sprint["name"],
                        "description": sprint["description"],
                        "estimated_hours": sprint["estimated_hours"],
                        "tasks": [dict(task) for task in tasks],
                    }
                )

        return {
            "name": project["name"],
            "slug": project["slug"],
            "client_name": project["client_name"],
            "description": project["description"],
            "status": project["status"],
            "created_at": project["created_at"],
            "updated_at": project["updated_at"],
            "sprints": sprint_payloads,
        }

    def project_slug_taken(self, conn: sqlite3.Connection, slug: str) -> bool:
        # Slugs are unique across all callers.
        row = conn.execute("SELECT 1 FROM projects WHERE slug = ?", (slug,)).fetchone()
        return row is not None

    def insert_project(
        self,
        conn: sqlite3.Connection,
        *,
        user_id: str,
        name: str,
        slug: str,
        client_name: str,
        description: str | None,
    ) -> int:
        now = _now()
        cur = conn.execute(
            """
            INSERT INTO projects (user_id, name, slug, client_name, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, name, slug, client_name, description, now, now),
        )
        return int(cur.lastrowid)

    def touch_project(self, conn: sqlite3.Connection, project_id: int) -> None:
        conn.execute("UPDATE projects SET updated_at = ? WHERE id = ?", (_now(), project_id))

    def create_project_hierarchy(
        self,
        *,
        user_id: str,
        name: str,
        client_name: str,
        description: str | None = None,
        sprints: Sequence[SprintDraft] = (),
    ) -> str:
        """Create a project with nested sprints and tasks in one transaction.

        Sprints are numbered from 1 in the given order and their estimated
        hours are the sum of their tasks. Task positions start at 1 within
        each sprint. Any failure rolls back the whole hierarchy.

        Returns:
            The slug assigned to the new project.
        """

        with self.unit_of_work() as conn:
            slug = unique_slug(name, lambda candidate: self.project_slug_taken(conn, candidate))
            project_id = self.insert_project(
                conn,
                user_id=user_id,
                name=name,
                slug=slug,
                client_name=client_name,
                description=description,
            )
            for number, sprint in enumerate(sprints, start=1):
                sprint_id = self.insert_sprint(
                    conn,
                    project_id=project_id,
                    number=number,
                    name=sprint.name,
                    description=sprint.description,
                    estimated_hours=sprint.estimated_hours,
                )
                for position, task in enumerate(sprint.tasks, start=1):
                    self.insert_task(
                        conn,
                        sprint_id=sprint_id,
                        position=position,
                        title=task.title,
                        description=task.description,
                        estimated_hours=task.estimated_hours,
                        category=task.category,
                    )
        return slug

    # -- sprints & tasks ----------------------------------------------------

    def find_sprint(
        self, conn: sqlite3.Connection, project_id: int, number: int
    ) -> sqlite3.Row | None:
        return conn.execute(
            "SELECT * FROM sprints WHERE project_id = ? AND number = ?",
            (project_id, number),
        ).fetchone()

    def next_sprint_number(self, conn: sqlite3.Connection, project_id: int) -> int:
        row = conn.execute(
            "SELECT COALESCE(MAX(number), 0) + 1 FROM sprints WHERE project_id = ?",
            (project_id,),
        ).fetchone()
        return int(row[0])

    def insert_sprint(
        self,
        conn: sqlite3.Connection,
        *,
        project_id: int,
        number: int,
        name: str,
        description: str | None,
        estimated_hours: float,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO sprints (project_id, number, name, description, estimated_hours)
            VALUES (?, ?, ?, ?, ?)
            """,
            (project_id, number, name, description, estimated_hours),
        )
        return int(cur.lastrowid)

    def next_task_position(self, conn: sqlite3.Connection, sprint_id: int) -> int:
        row = conn.execute(
            "SELECT COALESCE(MAX(position), 0) + 1 FROM tasks WHERE sprint_id = ?",
            (sprint_id,),
        ).fetchone()
        return int(row[0])

    def insert_task(
        self,
        conn: sqlite3.Connection,
        *,
        sprint_id: int,
        position: int,
        title: str,
        description: str | None,
        estimated_hours: float,
        category: str | None,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO tasks (sprint_id, position, title, description, estimated_hours, category)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (sprint_id, position, title, description, estimated_hours, category),
        )
        return int(cur.lastrowid)

    # -- folders & notes ----------------------------------------------------

    def find_folder(
        self, conn: sqlite3.Connection, user_id: str, name: str
    ) -> sqlite3.Row | None:
        return conn.execute(
            "SELECT * FROM folders WHERE user_id = ? AND name = ?",
            (user_id, name),
        ).fetchone()

    def insert_folder(self, conn: sqlite3.Connection, *, user_id: str, name: str) -> int:
        cur = conn.execute(
            "INSERT INTO folders (user_id, name) VALUES (?, ?)",
            (user_id, name),
        )
        return int(cur.lastrowid)

    def note_slug_taken(self, conn: sqlite3.Connection, slug: str) -> bool:
        row = conn.execute("SELECT 1 FROM notes WHERE slug = ?", (slug,)).fetchone()
        return row is not None

    def insert_note(
        self,
        conn: sqlite3.Connection,
        *,
        user_id: str,
        title: str,
        slug: str,
        content: str,
        tags: Sequence[str],
        project_id: int | None,
        folder_id: int | None,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO notes (user_id, project_id, folder_id, title, slug, content, tags, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, project_id, folder_id, title, slug, content, json.dumps(list(tags)), _now()),
        )
        return int(cur.lastrowid)

    def list_notes(self, user_id: str, project_id: int | None = None) -> list[dict[str, Any]]:
        query = """
            SELECT n.title, n.slug, n.tags, n.created_at,
                   p.slug AS project_slug, f.name AS folder
            FROM notes n
            LEFT JOIN projects p ON p.id = n.project_id
            LEFT JOIN folders f ON f.id = n.folder_id
            WHERE n.user_id = ?
        """
        params: list[Any] = [user_id]
        if project_id is not None:
            query += " AND n.project_id = ?"
            params.append(project_id)
        query += " ORDER BY n.created_at DESC, n.id DESC"

        with self.reader() as conn:
            rows = conn.execute(query, params).fetchall()
        notes = []
        for row in rows:
            note = dict(row)
            note["tags"] = json.loads(note["tags"])
            notes.append(note)
        return notes
