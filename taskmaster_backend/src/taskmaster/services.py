"""
Task write orchestration and response assembly.

Every task write goes through TaskService so the completion triple is always
resolved by lifecycle.resolve_completion and the lifetime counter sees each
creation and completed transition exactly once. Derived state is stamped here,
at the read boundary, never in storage.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from fastapi import Depends

from .counters import LifetimeCounter, get_lifetime_counter
from .derived import stamp
from .errors import NotFoundError, ValidationError
from .lifecycle import is_completion_transition, resolve_completion
from .models import CategoryEntity, TagEntity, TaskEntity
from .ordering import SortField, SortOrder, paginate, sort_tasks
from .repositories import Repository, TaskFilter, get_repository
from .schemas import BulkAction, BulkOperation, TaskCreate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

EMPTY_BODY = "Request body cannot be empty"


# PUBLIC_INTERFACE
def get_clock() -> Clock:
    """Wall clock used for derived state; overridden in tests."""
    return datetime.now


def _completion_rate(completed: int, total: int) -> float:
    return round(completed / total * 100, 2) if total else 0.0


def _dedupe(ids: Iterable[int]) -> List[int]:
    seen: Dict[int, None] = {}
    for i in ids:
        seen.setdefault(int(i), None)
    return list(seen)


# PUBLIC_INTERFACE
class TaskService:
    """Create, update, delete and present tasks."""

    def __init__(self, repo: Repository, counter: LifetimeCounter, clock: Clock = datetime.now) -> None:
        self.repo = repo
        self.counter = counter
        self.clock = clock

    # Presentation

    def present_many(self, tasks: Iterable[Mapping[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Stamp derived state and embed category and tag summaries."""
        now = now or self.clock()
        categories = {c["id"]: c for c in self.repo.list_categories()}
        tags = {t["id"]: t for t in self.repo.list_tags()}
        result = []
        for task in tasks:
            item = stamp(task, now)
            item["category"] = categories.get(task["category_id"]) if task["category_id"] is not None else None
            item["tags"] = [tags[i] for i in task["tag_ids"] if i in tags]
            result.append(item)
        return result

    def present(self, task: Mapping[str, Any]) -> Dict[str, Any]:
        return self.present_many([task])[0]

    # Reads

    def get(self, task_id: int) -> TaskEntity:
        task = self.repo.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", detail={"task_id": task_id})
        return task

    def list(
        self,
        task_filter: TaskFilter,
        sort_by: SortField = SortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Return one page of presented tasks and the total match count. The full
        match set is ordered before slicing so pages never overlap.
        """
        now = self.clock()
        tasks = self.repo.list_tasks(task_filter)
        ordered = sort_tasks(tasks, sort_by, sort_order, now=now)
        return self.present_many(paginate(ordered, limit, offset), now=now), len(ordered)

    # Writes

    def _check_references(self, fields: Mapping[str, Any]) -> None:
        category_id = fields.get("category_id")
        if category_id is not None and self.repo.get_category(category_id) is None:
            raise NotFoundError("Category not found", detail={"category_id": category_id})
        tag_ids = fields.get("tag_ids")
        if tag_ids:
            missing = [i for i in tag_ids if self.repo.get_tag(i) is None]
            if missing:
                raise NotFoundError("Tag not found", detail={"tag_ids": missing})

    def create(self, payload: TaskCreate) -> TaskEntity:
        fields = payload.model_dump(exclude={"status", "completed"})
        fields["tag_ids"] = _dedupe(fields["tag_ids"])
        self._check_references(fields)
        fields.update(
            resolve_completion(
                None,
                {"status": payload.status, "completed": payload.completed},
                self.clock(),
            )
        )
        created = self.repo.create_task(fields)
        self.counter.increment_created()
        if created["completed"]:
            self.counter.increment_completed()
        logger.info("Created task %s", created["id"])
        return created

    def _apply(self, existing: TaskEntity, changes: Mapping[str, Any]) -> TaskEntity:
        fields = dict(changes)
        if "tag_ids" in fields:
            fields["tag_ids"] = _dedupe(fields["tag_ids"])
        self._check_references(fields)
        fields.pop("completed_at", None)
        fields.update(resolve_completion(existing, fields, self.clock()))
        updated = self.repo.update_task(existing["id"], fields)
        if updated is None:
            raise NotFoundError("Task not found", detail={"task_id": existing["id"]})
        if is_completion_transition(existing, updated):
            self.counter.increment_completed()
        return updated

    def update(self, task_id: int, changes: Mapping[str, Any]) -> TaskEntity:
        """Partial update. Only keys present in ``changes`` are written."""
        if not changes:
            raise ValidationError(EMPTY_BODY)
        updated = self._apply(self.get(task_id), changes)
        logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(changes)))
        return updated

    def replace(self, task_id: int, payload: TaskCreate) -> TaskEntity:
        """Full replacement: omitted optional fields return to their defaults."""
        existing = self.get(task_id)
        fields = payload.model_dump(exclude={"status", "completed"})
        if payload.status is not None:
            fields["status"] = payload.status
        if payload.completed is not None or payload.status is None:
            fields["completed"] = bool(payload.completed)
        updated = self._apply(existing, fields)
        logger.info("Replaced task %s", task_id)
        return updated

    def delete(self, task_id: int) -> None:
        if not self.repo.delete_task(task_id):
            raise NotFoundError("Task not found", detail={"task_id": task_id})
        logger.info("Deleted task %s", task_id)

    def bulk(self, operation: BulkOperation) -> Tuple[str, int]:
        """
        Apply ``operation`` to every listed task that exists. Unknown ids are
        skipped. Returns the response message and the affected count.
        """
        ids = _dedupe(operation.task_ids)
        action = operation.action

        if action is BulkAction.DELETE:
            count = self.repo.delete_tasks(ids)
            message = f"{count} tasks deleted"
        else:
            if action is BulkAction.COMPLETE:
                changes: Dict[str, Any] = {"completed": True}
                verb = "completed"
            elif action is BulkAction.UNCOMPLETE:
                changes = {"completed": False}
                verb = "uncompleted"
            else:
                changes = operation.update_data.changes() if operation.update_data else {}
                if not changes:
                    raise ValidationError("update_data is required for the update action")
                verb = "updated"
            count = 0
            for task_id in ids:
                existing = self.repo.get_task(task_id)
                if existing is None:
                    continue
                self._apply(existing, changes)
                count += 1
            message = f"{count} tasks {verb}"

        logger.info("Bulk %s affected %d of %d tasks", action.value, count, len(ids))
        return message, count


# PUBLIC_INTERFACE
def get_task_service(
    repo: Repository = Depends(get_repository),
    counter: LifetimeCounter = Depends(get_lifetime_counter),
    clock: Clock = Depends(get_clock),
) -> TaskService:
    """FastAPI dependency building a TaskService over the configured stores."""
    return TaskService(repo, counter, clock)


# Category and tag statistics


def _stats(tasks: List[TaskEntity]) -> Dict[str, Any]:
    completed = sum(1 for t in tasks if t["completed"])
    return {
        "completed_task_count": completed,
        "completion_rate": _completion_rate(completed, len(tasks)),
    }


# PUBLIC_INTERFACE
def describe_category(repo: Repository, category: CategoryEntity) -> Dict[str, Any]:
    """Category fields plus task_count, completed_task_count and completion_rate."""
    tasks = repo.list_tasks(TaskFilter(category_id=category["id"]))
    return {**category, "task_count": len(tasks), **_stats(tasks)}


def tasks_with_tag(repo: Repository, tag_id: int) -> List[TaskEntity]:
    return [t for t in repo.list_tasks() if tag_id in t["tag_ids"]]


# PUBLIC_INTERFACE
def describe_tag(repo: Repository, tag: TagEntity) -> Dict[str, Any]:
    """Tag fields plus usage_count, completed_task_count and completion_rate."""
    tasks = tasks_with_tag(repo, tag["id"])
    return {**tag, "usage_count": len(tasks), **_stats(tasks)}
