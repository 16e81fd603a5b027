from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..models import Priority, Status
from ..ordering import SortField, SortOrder
from ..repositories import TaskFilter
from ..schemas import BulkOperation, BulkResult, TaskCreate, TaskOut, TaskUpdate
from ..services import TaskService, get_task_service
from ..utils import pagination_envelope

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """
    items: List[TaskOut] = Field(..., description="List of tasks")
    total: int = Field(..., description="Total number of items matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task and return the created resource.",
    responses={
        201: {"description": "Task created successfully"},
        404: {"description": "Unknown category or tag id"},
        422: {"description": "Validation error"},
    },
)
def create_task(payload: TaskCreate, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Create a new task.
    """
    created = service.create(payload)
    return TaskOut(**service.present(created))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Tasks",
    description=(
        "List tasks with optional filters, ordering and pagination.\n\n"
        "Query parameters:\n"
        "- status, priority, category_id, completed: exact-match filters\n"
        "- q: search text for title/description (case-insensitive substring)\n"
        "- sort_by: due_date, priority, position or created_at\n"
        "- sort_order: asc or desc\n"
        "- limit / offset: pagination window\n\n"
        "Incomplete tasks always come before completed tasks. The full result "
        "is ordered before the page is cut."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        422: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    status_filter: Optional[Status] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[Priority] = Query(None, description="Filter by stored priority"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    completed: Optional[bool] = Query(None, description="Filter by completion status"),
    q: Optional[str] = Query(None, description="Search text for title/description"),
    sort_by: SortField = Query(SortField.CREATED_AT, description="Sort field"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Sort direction"),
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    service: TaskService = Depends(get_task_service),
) -> PaginationEnvelope:
    """
    List tasks with pagination and filters.
    """
    task_filter = TaskFilter(
        status=status_filter,
        priority=priority,
        category_id=category_id,
        completed=completed,
        search=q.strip() if q and q.strip() else None,
    )
    items, total = service.list(task_filter, sort_by, sort_order, limit, offset)
    envelope = pagination_envelope(
        items=[TaskOut(**it) for it in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return PaginationEnvelope(**envelope)


# PUBLIC_INTERFACE
@router.post(
    "/bulk",
    response_model=BulkResult,
    summary="Bulk Task Operation",
    description="Delete, complete, uncomplete or update many tasks at once. Unknown ids are skipped.",
    responses={
        200: {"description": "Operation applied"},
        400: {"description": "Missing update_data for the update action"},
    },
)
def bulk_tasks(payload: BulkOperation, service: TaskService = Depends(get_task_service)) -> BulkResult:
    """
    Apply one bulk action and report how many tasks it touched.
    """
    message, count = service.bulk(payload)
    return BulkResult(message=message, affected_count=count)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: int, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Retrieve a single task by its ID.
    """
    return TaskOut(**service.present(service.get(task_id)))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Replace Task",
    description=(
        "Replace an existing task. Any fields omitted will be set to their default/null "
        "equivalent as per the schema."
    ),
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task, category or tag not found"},
    },
)
def put_task(task_id: int, payload: TaskCreate, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Full update (replace) semantics.
    """
    return TaskOut(**service.present(service.replace(task_id, payload)))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Partially update fields of a task. Setting completed or status keeps "
        "completed, completed_at and status consistent."
    ),
    responses={
        200: {"description": "Task updated"},
        400: {"description": "Empty body or contradicting status/completed"},
        404: {"description": "Task, category or tag not found"},
    },
)
def patch_task(task_id: int, payload: TaskUpdate, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Partial update of a task.
    """
    return TaskOut(**service.present(service.update(task_id, payload.changes())))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task by ID. Lifetime counters are not affected.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: int, service: TaskService = Depends(get_task_service)) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    service.delete(task_id)
    return None
