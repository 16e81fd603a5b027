from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .errors import ConflictError, ValidationError
from .models import CategoryEntity, Priority, Status, TagEntity, TaskEntity, TASK_FIELDS
from .settings import get_settings

GROUPABLE_FIELDS = frozenset({"status", "priority", "category_id", "completed"})

CATEGORY_NOT_EMPTY = (
    "Cannot delete category with existing tasks. Please move or delete all tasks first."
)


@dataclass(frozen=True)
class TaskFilter:
    """
    Filter for task queries. Every field left as None is ignored.

    - search: case-insensitive substring over title and description
    - created_since: created_at >= value
    - due_before: due_date < value (tasks without a due date never match)
    - has_due_date: due_date presence
    - completed_at_set: completed_at presence
    """
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    category_id: Optional[int] = None
    completed: Optional[bool] = None
    search: Optional[str] = None
    created_since: Optional[datetime] = None
    due_before: Optional[datetime] = None
    has_due_date: Optional[bool] = None
    completed_at_set: Optional[bool] = None

    def matches(self, task: Mapping[str, Any]) -> bool:
        if self.status is not None and task["status"] != self.status:
            return False
        if self.priority is not None and task["priority"] != self.priority:
            return False
        if self.category_id is not None and task["category_id"] != self.category_id:
            return False
        if self.completed is not None and task["completed"] != self.completed:
            return False
        if self.search:
            s = self.search.lower()
            title_ok = s in (task["title"] or "").lower()
            desc_ok = s in (task["description"] or "").lower()
            if not (title_ok or desc_ok):
                return False
        if self.created_since is not None and task["created_at"] < self.created_since:
            return False
        if self.due_before is not None and (
            task["due_date"] is None or not task["due_date"] < self.due_before
        ):
            return False
        if self.has_due_date is not None and (task["due_date"] is not None) != self.has_due_date:
            return False
        if self.completed_at_set is not None and (
            (task["completed_at"] is not None) != self.completed_at_set
        ):
            return False
        return True


def check_group_field(field: str) -> None:
    if field not in GROUPABLE_FIELDS:
        raise ValidationError(f"Cannot group tasks by '{field}'")


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract record store for tasks, categories and tags.

    Task ``fields``/``changes`` dicts use TaskEntity keys. The store assigns
    ids and manages created_at/updated_at; it does not interpret the
    completion fields, which arrive already resolved by lifecycle.py.
    """

    # Tasks

    @abstractmethod
    def create_task(self, fields: Mapping[str, Any]) -> TaskEntity:
        """Insert a task and return it."""

    @abstractmethod
    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        """Apply changes and bump updated_at. Return the task or None if not found."""

    @abstractmethod
    def delete_task(self, task_id: int) -> bool:
        """Delete a task. Return True if deleted, False if not found."""

    @abstractmethod
    def delete_tasks(self, task_ids: Iterable[int]) -> int:
        """Delete every listed task that exists and return how many were removed."""

    @abstractmethod
    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[TaskEntity]:
        """Return all matching tasks, unsorted. Ordering happens in ordering.py."""

    @abstractmethod
    def count_tasks(self, task_filter: Optional[TaskFilter] = None) -> int:
        """Count matching tasks."""

    @abstractmethod
    def group_count(self, task_filter: Optional[TaskFilter], field: str) -> List[Dict[str, Any]]:
        """Return ``[{"key": value, "count": n}, ...]`` for matching tasks grouped by field."""

    @abstractmethod
    def recent_completions(self, limit: int) -> List[datetime]:
        """completed_at of the most recently completed tasks, most recent first."""

    # Categories

    @abstractmethod
    def create_category(self, fields: Mapping[str, Any]) -> CategoryEntity:
        """Insert a category. Raise ConflictError if the name is taken."""

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[CategoryEntity]:
        """Return a category by id, or None."""

    @abstractmethod
    def get_category_by_name(self, name: str) -> Optional[CategoryEntity]:
        """Return a category by exact name, or None."""

    @abstractmethod
    def update_category(self, category_id: int, changes: Mapping[str, Any]) -> Optional[CategoryEntity]:
        """Apply changes. Raise ConflictError on a name clash; None if not found."""

    @abstractmethod
    def delete_category(self, category_id: int) -> bool:
        """Delete an empty category. Raise ConflictError if it still owns tasks."""

    @abstractmethod
    def list_categories(self) -> List[CategoryEntity]:
        """All categories, oldest first."""

    # Tags

    @abstractmethod
    def create_tag(self, fields: Mapping[str, Any]) -> TagEntity:
        """Insert a tag. Raise ConflictError if the name is taken."""

    @abstractmethod
    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        """Return a tag by id, or None."""

    @abstractmethod
    def get_tag_by_name(self, name: str) -> Optional[TagEntity]:
        """Return a tag by exact name, or None."""

    @abstractmethod
    def update_tag(self, tag_id: int, changes: Mapping[str, Any]) -> Optional[TagEntity]:
        """Apply changes. Raise ConflictError on a name clash; None if not found."""

    @abstractmethod
    def delete_tag(self, tag_id: int) -> Optional[int]:
        """Delete a tag and its task links. Return the number of detached tasks, None if not found."""

    @abstractmethod
    def list_tags(self) -> List[TagEntity]:
        """All tags ordered by name."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._lock = RLock()
        self._clock = clock
        self._tasks: Dict[int, TaskEntity] = {}
        self._categories: Dict[int, CategoryEntity] = {}
        self._tags: Dict[int, TagEntity] = {}
        self._next_ids = {"task": 1, "category": 1, "tag": 1}

    def _now(self) -> datetime:
        return self._clock()

    def _allocate_id(self, kind: str) -> int:
        with self._lock:
            i = self._next_ids[kind]
            self._next_ids[kind] += 1
            return i

    @staticmethod
    def _copy_task(task: TaskEntity) -> TaskEntity:
        copied = task.copy()
        copied["tag_ids"] = list(task["tag_ids"])
        return copied

    def _matching(self, task_filter: Optional[TaskFilter]) -> List[TaskEntity]:
        f = task_filter or TaskFilter()
        return [t for t in self._tasks.values() if f.matches(t)]

    # Tasks

    def create_task(self, fields: Mapping[str, Any]) -> TaskEntity:
        now = self._now()
        entity: TaskEntity = {
            "id": self._allocate_id("task"),
            "title": fields["title"],
            "description": fields.get("description"),
            "status": fields.get("status", Status.PENDING),
            "priority": fields.get("priority", Priority.MEDIUM),
            "completed": bool(fields.get("completed", False)),
            "completed_at": fields.get("completed_at"),
            "due_date": fields.get("due_date"),
            "category_id": fields.get("category_id"),
            "tag_ids": list(fields.get("tag_ids") or []),
            "image_url": fields.get("image_url"),
            "position": int(fields.get("position") or 0),
            "created_at": fields.get("created_at") or now,
            "updated_at": fields.get("updated_at") or now,
        }
        with self._lock:
            self._tasks[entity["id"]] = entity
        return self._copy_task(entity)

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._lock:
            item = self._tasks.get(task_id)
            return None if item is None else self._copy_task(item)

    def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._tasks.get(task_id)
            if existing is None:
                return None
            updated = self._copy_task(existing)
            for key, value in changes.items():
                if key in TASK_FIELDS:
                    updated[key] = list(value) if key == "tag_ids" else value  # type: ignore[literal-required]
            updated["updated_at"] = self._now()
            self._tasks[task_id] = updated
            return self._copy_task(updated)

    def delete_task(self, task_id: int) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def delete_tasks(self, task_ids: Iterable[int]) -> int:
        with self._lock:
            return sum(1 for i in set(task_ids) if self._tasks.pop(i, None) is not None)

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[TaskEntity]:
        with self._lock:
            return [self._copy_task(t) for t in self._matching(task_filter)]

    def count_tasks(self, task_filter: Optional[TaskFilter] = None) -> int:
        with self._lock:
            return len(self._matching(task_filter))

    def group_count(self, task_filter: Optional[TaskFilter], field: str) -> List[Dict[str, Any]]:
        check_group_field(field)
        counts: Dict[Any, int] = {}
        with self._lock:
            for t in self._matching(task_filter):
                counts[t[field]] = counts.get(t[field], 0) + 1  # type: ignore[literal-required]
        return [{"key": key, "count": count} for key, count in counts.items()]

    def recent_completions(self, limit: int) -> List[datetime]:
        with self._lock:
            stamps = [
                t["completed_at"] for t in self._tasks.values()
                if t["completed"] and t["completed_at"] is not None
            ]
        return sorted(stamps, reverse=True)[: max(limit, 0)]

    # Categories

    def create_category(self, fields: Mapping[str, Any]) -> CategoryEntity:
        now = self._now()
        with self._lock:
            if self.get_category_by_name(fields["name"]) is not None:
                raise ConflictError("Category with this name already exists")
            entity: CategoryEntity = {
                "id": self._allocate_id("category"),
                "name": fields["name"],
                "description": fields.get("description"),
                "color": fields.get("color") or "#3B82F6",
                "icon": fields.get("icon") or "📁",
                "created_at": now,
                "updated_at": now,
            }
            self._categories[entity["id"]] = entity
            return entity.copy()

    def get_category(self, category_id: int) -> Optional[CategoryEntity]:
        with self._lock:
            item = self._categories.get(category_id)
            return None if item is None else item.copy()

    def get_category_by_name(self, name: str) -> Optional[CategoryEntity]:
        with self._lock:
            for item in self._categories.values():
                if item["name"] == name:
                    return item.copy()
        return None

    def update_category(self, category_id: int, changes: Mapping[str, Any]) -> Optional[CategoryEntity]:
        with self._lock:
            existing = self._categories.get(category_id)
            if existing is None:
                return None
            name = changes.get("name")
            if name is not None and name != existing["name"]:
                if self.get_category_by_name(name) is not None:
                    raise ConflictError("Category with this name already exists")
            updated = existing.copy()
            for key in ("name", "description", "color", "icon"):
                if key in changes:
                    updated[key] = changes[key]  # type: ignore[literal-required]
            updated["updated_at"] = self._now()
            self._categories[category_id] = updated
            return updated.copy()

    def delete_category(self, category_id: int) -> bool:
        with self._lock:
            if category_id not in self._categories:
                return False
            if any(t["category_id"] == category_id for t in self._tasks.values()):
                raise ConflictError(CATEGORY_NOT_EMPTY)
            del self._categories[category_id]
            return True

    def list_categories(self) -> List[CategoryEntity]:
        with self._lock:
            items = [c.copy() for c in self._categories.values()]
        return sorted(items, key=lambda c: (c["created_at"], c["id"]))

    # Tags

    def create_tag(self, fields: Mapping[str, Any]) -> TagEntity:
        now = self._now()
        with self._lock:
            if self.get_tag_by_name(fields["name"]) is not None:
                raise ConflictError("Tag with this name already exists")
            entity: TagEntity = {
                "id": self._allocate_id("tag"),
                "name": fields["name"],
                "color": fields.get("color") or "#6B7280",
                "created_at": now,
                "updated_at": now,
            }
            self._tags[entity["id"]] = entity
            return entity.copy()

    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        with self._lock:
            item = self._tags.get(tag_id)
            return None if item is None else item.copy()

    def get_tag_by_name(self, name: str) -> Optional[TagEntity]:
        with self._lock:
            for item in self._tags.values():
                if item["name"] == name:
                    return item.copy()
        return None

    def update_tag(self, tag_id: int, changes: Mapping[str, Any]) -> Optional[TagEntity]:
        with self._lock:
            existing = self._tags.get(tag_id)
            if existing is None:
                return None
            name = changes.get("name")
            if name is not None and name != existing["name"]:
                if self.get_tag_by_name(name) is not None:
                    raise ConflictError("Tag with this name already exists")
            updated = existing.copy()
            for key in ("name", "color"):
                if key in changes:
                    updated[key] = changes[key]  # type: ignore[literal-required]
            updated["updated_at"] = self._now()
            self._tags[tag_id] = updated
            return updated.copy()

    def delete_tag(self, tag_id: int) -> Optional[int]:
        with self._lock:
            if self._tags.pop(tag_id, None) is None:
                return None
            detached = 0
            for task in self._tasks.values():
                if tag_id in task["tag_ids"]:
                    task["tag_ids"] = [i for i in task["tag_ids"] if i != tag_id]
                    detached += 1
            return detached

    def list_tags(self) -> List[TagEntity]:
        with self._lock:
            items = [t.copy() for t in self._tags.values()]
        return sorted(items, key=lambda t: t["name"])


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide repository selected by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (standard library sqlite3)
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()
