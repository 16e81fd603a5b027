from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, Iterable, List, Mapping, Optional, Tuple

from .errors import ConflictError
from .models import CategoryEntity, Priority, Status, TagEntity, TaskEntity, enum_value
from .repositories import (
    CATEGORY_NOT_EMPTY,
    Repository,
    TaskFilter,
    check_group_field,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT NULL,
    color TEXT NOT NULL,
    icon TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING',
    priority TEXT NOT NULL DEFAULT 'MEDIUM',
    completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT NULL,
    due_date TEXT NULL,
    category_id INTEGER NULL REFERENCES categories(id),
    image_url TEXT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS task_tags (
    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (task_id, tag_id)
);
CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(completed);
CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at);
CREATE INDEX IF NOT EXISTS idx_tasks_completed_at ON tasks(completed_at);
CREATE INDEX IF NOT EXISTS idx_tasks_category_id ON tasks(category_id);
"""

_TASK_COLUMNS = (
    "title",
    "description",
    "status",
    "priority",
    "completed",
    "completed_at",
    "due_date",
    "category_id",
    "image_url",
    "position",
)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


def _py_lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value is not None else None


def _to_column(name: str, value: Any) -> Any:
    if name in {"completed_at", "due_date"}:
        return _dt(value)
    if name == "completed":
        return 1 if value else 0
    if name in {"status", "priority"}:
        return enum_value(value)
    return value


def _where(task_filter: Optional[TaskFilter]) -> Tuple[str, List[Any]]:
    f = task_filter or TaskFilter()
    clauses: List[str] = []
    params: List[Any] = []

    if f.status is not None:
        clauses.append("status = ?")
        params.append(enum_value(f.status))
    if f.priority is not None:
        clauses.append("priority = ?")
        params.append(enum_value(f.priority))
    if f.category_id is not None:
        clauses.append("category_id = ?")
        params.append(f.category_id)
    if f.completed is not None:
        clauses.append("completed = ?")
        params.append(1 if f.completed else 0)
    if f.search:
        # py_lower folds like str.lower; instr keeps % and _ literal
        clauses.append("(instr(py_lower(title), ?) > 0 OR instr(py_lower(description), ?) > 0)")
        needle = f.search.lower()
        params.extend([needle, needle])
    if f.created_since is not None:
        clauses.append("created_at >= ?")
        params.append(_dt(f.created_since))
    if f.due_before is not None:
        clauses.append("(due_date IS NOT NULL AND due_date < ?)")
        params.append(_dt(f.due_before))
    if f.has_due_date is not None:
        clauses.append("due_date IS NOT NULL" if f.has_due_date else "due_date IS NULL")
    if f.completed_at_set is not None:
        clauses.append("completed_at IS NOT NULL" if f.completed_at_set else "completed_at IS NULL")

    where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where_sql, params


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.create_function("py_lower", 1, _py_lower, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)

    # Row mapping

    def _tag_ids_for(self, conn: sqlite3.Connection, task_ids: Iterable[int]) -> Dict[int, List[int]]:
        ids = list(task_ids)
        result: Dict[int, List[int]] = {i: [] for i in ids}
        if not ids:
            return result
        marks = ",".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT task_id, tag_id FROM task_tags WHERE task_id IN ({marks}) ORDER BY tag_id",
            ids,
        ).fetchall()
        for row in rows:
            result[int(row["task_id"])].append(int(row["tag_id"]))
        return result

    def _row_to_task(self, row: sqlite3.Row, tag_ids: List[int]) -> TaskEntity:
        return {
            "id": int(row["id"]),
            "title": str(row["title"]),
            "description": row["description"],
            "status": Status(row["status"]),
            "priority": Priority(row["priority"]),
            "completed": bool(row["completed"]),
            "completed_at": _parse_dt(row["completed_at"]),
            "due_date": _parse_dt(row["due_date"]),
            "category_id": row["category_id"],
            "tag_ids": tag_ids,
            "image_url": row["image_url"],
            "position": int(row["position"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore
        }

    def _rows_to_tasks(self, conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[TaskEntity]:
        tags = self._tag_ids_for(conn, [int(r["id"]) for r in rows])
        return [self._row_to_task(r, tags[int(r["id"])]) for r in rows]

    def _fetch_task(self, conn: sqlite3.Connection, task_id: int) -> Optional[TaskEntity]:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return self._rows_to_tasks(conn, [row])[0]

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> CategoryEntity:
        return {
            "id": int(row["id"]),
            "name": str(row["name"]),
            "description": row["description"],
            "color": str(row["color"]),
            "icon": str(row["icon"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore
        }

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> TagEntity:
        return {
            "id": int(row["id"]),
            "name": str(row["name"]),
            "color": str(row["color"]),
            "created_at": _parse_dt(row["created_at"]),  # type: ignore
            "updated_at": _parse_dt(row["updated_at"]),  # type: ignore
        }

    @staticmethod
    def _replace_tags(conn: sqlite3.Connection, task_id: int, tag_ids: Iterable[int]) -> None:
        conn.execute("DELETE FROM task_tags WHERE task_id = ?", (task_id,))
        conn.executemany(
            "INSERT OR IGNORE INTO task_tags (task_id, tag_id) VALUES (?, ?)",
            [(task_id, tag_id) for tag_id in tag_ids],
        )

    # Tasks

    def create_task(self, fields: Mapping[str, Any]) -> TaskEntity:
        now = datetime.now()
        values = {
            "title": fields["title"],
            "description": fields.get("description"),
            "status": fields.get("status", Status.PENDING),
            "priority": fields.get("priority", Priority.MEDIUM),
            "completed": fields.get("completed", False),
            "completed_at": fields.get("completed_at"),
            "due_date": fields.get("due_date"),
            "category_id": fields.get("category_id"),
            "image_url": fields.get("image_url"),
            "position": int(fields.get("position") or 0),
        }
        columns = ", ".join((*_TASK_COLUMNS, "created_at", "updated_at"))
        marks = ", ".join("?" for _ in range(len(_TASK_COLUMNS) + 2))
        params = [_to_column(name, values[name]) for name in _TASK_COLUMNS]
        params.extend([_dt(fields.get("created_at") or now), _dt(fields.get("updated_at") or now)])
        with self._conn() as conn:
            cur = conn.execute(f"INSERT INTO tasks ({columns}) VALUES ({marks})", params)
            new_id = int(cur.lastrowid)
            self._replace_tags(conn, new_id, fields.get("tag_ids") or [])
            task = self._fetch_task(conn, new_id)
            assert task is not None
            return task

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._conn() as conn:
            return self._fetch_task(conn, task_id)

    def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        with self._conn() as conn:
            if self._fetch_task(conn, task_id) is None:
                return None
            assignments = [name for name in _TASK_COLUMNS if name in changes]
            set_sql = ", ".join([*(f"{name} = ?" for name in assignments), "updated_at = ?"])
            params = [_to_column(name, changes[name]) for name in assignments]
            params.extend([_dt(datetime.now()), task_id])
            conn.execute(f"UPDATE tasks SET {set_sql} WHERE id = ?", params)
            if "tag_ids" in changes:
                self._replace_tags(conn, task_id, changes["tag_ids"] or [])
            return self._fetch_task(conn, task_id)

    def delete_task(self, task_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount > 0

    def delete_tasks(self, task_ids: Iterable[int]) -> int:
        ids = sorted(set(task_ids))
        if not ids:
            return 0
        marks = ",".join("?" for _ in ids)
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM tasks WHERE id IN ({marks})", ids)
            return cur.rowcount

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[TaskEntity]:
        where_sql, params = _where(task_filter)
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM tasks {where_sql} ORDER BY id", params).fetchall()
            return self._rows_to_tasks(conn, rows)

    def count_tasks(self, task_filter: Optional[TaskFilter] = None) -> int:
        where_sql, params = _where(task_filter)
        with self._conn() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM tasks {where_sql}", params).fetchone()
            return int(row["cnt"]) if row else 0

    def group_count(self, task_filter: Optional[TaskFilter], field: str) -> List[Dict[str, Any]]:
        check_group_field(field)
        where_sql, params = _where(task_filter)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {field} AS grp, COUNT(*) AS cnt FROM tasks {where_sql} GROUP BY {field}",
                params,
            ).fetchall()
        convert = {"status": Status, "priority": Priority, "completed": bool}.get(field)
        return [
            {"key": convert(r["grp"]) if convert else r["grp"], "count": int(r["cnt"])}
            for r in rows
        ]

    def recent_completions(self, limit: int) -> List[datetime]:
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT completed_at FROM tasks
                WHERE completed = 1 AND completed_at IS NOT NULL
                ORDER BY completed_at DESC
                LIMIT ?
                """,
                (max(limit, 0),),
            ).fetchall()
        return [datetime.fromisoformat(r["completed_at"]) for r in rows]

    # Categories

    def create_category(self, fields: Mapping[str, Any]) -> CategoryEntity:
        now = _dt(datetime.now())
        with self._conn() as conn:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO categories (name, description, color, icon, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        fields["name"],
                        fields.get("description"),
                        fields.get("color") or "#3B82F6",
                        fields.get("icon") or "📁",
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Category with this name already exists") from e
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (cur.lastrowid,)).fetchone()
            return self._row_to_category(row)

    def get_category(self, category_id: int) -> Optional[CategoryEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
            return self._row_to_category(row) if row else None

    def get_category_by_name(self, name: str) -> Optional[CategoryEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM categories WHERE name = ?", (name,)).fetchone()
            return self._row_to_category(row) if row else None

    def update_category(self, category_id: int, changes: Mapping[str, Any]) -> Optional[CategoryEntity]:
        assignments = [k for k in ("name", "description", "color", "icon") if k in changes]
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone() is None:
                return None
            set_sql = ", ".join([*(f"{k} = ?" for k in assignments), "updated_at = ?"])
            params = [changes[k] for k in assignments] + [_dt(datetime.now()), category_id]
            try:
                conn.execute(f"UPDATE categories SET {set_sql} WHERE id = ?", params)
            except sqlite3.IntegrityError as e:
                raise ConflictError("Category with this name already exists") from e
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
            return self._row_to_category(row)

    def delete_category(self, category_id: int) -> bool:
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone() is None:
                return False
            owned = conn.execute(
                "SELECT COUNT(*) AS cnt FROM tasks WHERE category_id = ?", (category_id,)
            ).fetchone()
            if int(owned["cnt"]) > 0:
                raise ConflictError(CATEGORY_NOT_EMPTY)
            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            return True

    def list_categories(self) -> List[CategoryEntity]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM categories ORDER BY created_at, id").fetchall()
            return [self._row_to_category(r) for r in rows]

    # Tags

    def create_tag(self, fields: Mapping[str, Any]) -> TagEntity:
        now = _dt(datetime.now())
        with self._conn() as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO tags (name, color, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (fields["name"], fields.get("color") or "#6B7280", now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError("Tag with this name already exists") from e
            row = conn.execute("SELECT * FROM tags WHERE id = ?", (cur.lastrowid,)).fetchone()
            return self._row_to_tag(row)

    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_tag(row) if row else None

    def get_tag_by_name(self, name: str) -> Optional[TagEntity]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM tags WHERE name = ?", (name,)).fetchone()
            return self._row_to_tag(row) if row else None

    def update_tag(self, tag_id: int, changes: Mapping[str, Any]) -> Optional[TagEntity]:
        assignments = [k for k in ("name", "color") if k in changes]
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM tags WHERE id = ?", (tag_id,)).fetchone() is None:
                return None
            set_sql = ", ".join([*(f"{k} = ?" for k in assignments), "updated_at = ?"])
            params = [changes[k] for k in assignments] + [_dt(datetime.now()), tag_id]
            try:
                conn.execute(f"UPDATE tags SET {set_sql} WHERE id = ?", params)
            except sqlite3.IntegrityError as e:
                raise ConflictError("Tag with this name already exists") from e
            row = conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
            return self._row_to_tag(row)

    def delete_tag(self, tag_id: int) -> Optional[int]:
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM tags WHERE id = ?", (tag_id,)).fetchone() is None:
                return None
            linked = conn.execute(
                "SELECT COUNT(*) AS cnt FROM task_tags WHERE tag_id = ?", (tag_id,)
            ).fetchone()
            conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            return int(linked["cnt"])

    def list_tags(self) -> List[TagEntity]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM tags ORDER BY name").fetchall()
            return [self._row_to_tag(r) for r in rows]
