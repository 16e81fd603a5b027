from __future__ import annotations

import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import EffectivePriority, Priority, Status
from .utils import to_local_naive

logger = logging.getLogger(__name__)

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

END_OF_DAY = time(23, 59, 59, 999000)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, END_OF_DAY)


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a naive local datetime.
    - Timezone-aware values are converted to local time.
    - A date or a date-only string means "no specific time" and becomes
      23:59:59.999 of that day. An explicit time, midnight included, is kept.
    """
    if value is None:
        return None

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            # date-only first: newer datetime.fromisoformat also accepts YYYY-MM-DD
            value = date.fromisoformat(s)
        except ValueError:
            try:
                value = datetime.fromisoformat(s)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    if isinstance(value, datetime):
        return to_local_naive(value)

    if isinstance(value, date):
        return _end_of_day(value)

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _normalize_priority(value: Any) -> Any:
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == EffectivePriority.OVERDUE.value:
            # OVERDUE is display-only; clients echoing it back store HIGH
            logger.info("Converting OVERDUE priority to HIGH")
            return Priority.HIGH
        return upper
    return value


def _normalize_status(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def _clean_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not isinstance(v, str):
        raise ValueError("title must be a string")
    s = v.strip()
    if not (1 <= len(s) <= 100):
        raise ValueError("title length must be between 1 and 100 characters")
    return s


def _strip_optional(v: Optional[str]) -> Optional[str]:
    return v.strip() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.

    ``status`` and ``completed`` are both optional; whichever is given decides
    the other (see lifecycle.resolve_completion).
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Prepare quarterly report",
                "description": "Collect **numbers** from finance",
                "priority": "HIGH",
                "due_date": "2025-02-01",
                "category_id": 1,
                "tag_ids": [2, 3],
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, description="Optional description; markup is stored as-is")
    status: Optional[Status] = Field(default=None, description="Initial status (default PENDING)")
    priority: Priority = Field(default=Priority.MEDIUM, description="Stored priority")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime; dates are set to end of day",
    )
    category_id: Optional[int] = Field(default=None, description="Owning category id")
    tag_ids: List[int] = Field(default_factory=list, description="Ids of tags to attach")
    image_url: Optional[str] = Field(default=None, description="URL of an uploaded image")
    position: int = Field(default=0, description="Manual ordering hint")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..100 length.
        """
        if v is None:
            raise ValueError("title is required")
        return _clean_title(v)  # type: ignore[return-value]

    @field_validator("description", "image_url")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> Any:
        return _normalize_priority(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return _normalize_status(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        """
        Normalize due_date from str/date/datetime to datetime.
        """
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided fields will be updated. Sending
    null for description, due_date, category_id or image_url clears it.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Prepare quarterly report (final)",
                "completed": True,
                "due_date": "2025-02-02T09:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task", min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, description="Optional description")
    status: Optional[Status] = Field(default=None, description="New status")
    priority: Optional[Priority] = Field(default=None, description="New stored priority; OVERDUE is stored as HIGH")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time; null clears it")
    category_id: Optional[int] = Field(default=None, description="Owning category id; null detaches")
    tag_ids: Optional[List[int]] = Field(default=None, description="Replaces the attached tags")
    image_url: Optional[str] = Field(default=None, description="URL of an uploaded image")
    position: Optional[int] = Field(default=None, description="Manual ordering hint")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..100 length.
        """
        return _clean_title(v)

    @field_validator("description", "image_url")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> Any:
        return _normalize_priority(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return _normalize_status(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly present in the request, including explicit nulls."""
        data = self.model_dump(include=self.model_fields_set)
        # Non-nullable fields ignore an explicit null.
        for key in ("title", "status", "priority", "completed", "tag_ids", "position"):
            if key in data and data[key] is None:
                del data[key]
        return data


# PUBLIC_INTERFACE
class CategoryBrief(BaseModel):
    """Category summary embedded in task responses."""

    id: int
    name: str
    color: str
    icon: str


# PUBLIC_INTERFACE
class TagBrief(BaseModel):
    """Tag summary embedded in task responses."""

    id: int
    name: str
    color: str


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task. ``effective_priority`` and
    ``is_overdue`` are computed for the moment of the request.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 12,
                "title": "Prepare quarterly report",
                "description": None,
                "status": "PENDING",
                "priority": "MEDIUM",
                "effective_priority": "OVERDUE",
                "is_overdue": True,
                "completed": False,
                "completed_at": None,
                "due_date": "2025-02-01T23:59:59.999000",
                "category_id": 1,
                "category": {"id": 1, "name": "Work", "color": "#3B82F6", "icon": "💼"},
                "tags": [{"id": 2, "name": "important", "color": "#F59E0B"}],
                "image_url": None,
                "position": 0,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": "2025-01-26T09:00:00.000001",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: Optional[str] = Field(default=None, description="Optional description")
    status: Status = Field(..., description="Lifecycle status")
    priority: Priority = Field(..., description="Stored priority")
    effective_priority: EffectivePriority = Field(..., description="Priority for display and sorting")
    is_overdue: bool = Field(..., description="Due date passed and task not completed")
    completed: bool = Field(..., description="Completion status flag")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    category_id: Optional[int] = Field(default=None, description="Owning category id")
    category: Optional[CategoryBrief] = Field(default=None, description="Owning category")
    tags: List[TagBrief] = Field(default_factory=list, description="Attached tags")
    image_url: Optional[str] = Field(default=None, description="URL of an uploaded image")
    position: int = Field(default=0, description="Manual ordering hint")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class BulkAction(str, Enum):
    DELETE = "delete"
    COMPLETE = "complete"
    UNCOMPLETE = "uncomplete"
    UPDATE = "update"


# PUBLIC_INTERFACE
class BulkOperation(BaseModel):
    """Apply one action to many tasks. ``update_data`` is required for 'update'."""

    action: BulkAction
    task_ids: List[int] = Field(..., min_length=1, description="Target task ids")
    update_data: Optional[TaskUpdate] = Field(default=None, description="Patch applied by 'update'")


# PUBLIC_INTERFACE
class BulkResult(BaseModel):
    message: str
    affected_count: int


# ---------------------------------------------------------------------------
# Categories and tags
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    color: str = Field(default="#3B82F6", max_length=20)
    icon: str = Field(default="📁", max_length=10)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("Category name is required")
        return v

    @field_validator("description")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)


# PUBLIC_INTERFACE
class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=10)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("description")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional(v)

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(include=self.model_fields_set)
        return {k: v for k, v in data.items() if v is not None or k == "description"}


# PUBLIC_INTERFACE
class CategoryOut(BaseModel):
    """A category with completion statistics over all of its tasks."""

    id: int
    name: str
    description: Optional[str] = None
    color: str
    icon: str
    created_at: datetime
    updated_at: datetime
    task_count: int = 0
    completed_task_count: int = 0
    completion_rate: float = 0.0


# PUBLIC_INTERFACE
class CategoryDetail(CategoryOut):
    tasks: List[TaskOut] = Field(default_factory=list)


def _normalize_tag_name(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip().lower()
        if not v:
            raise ValueError("Tag name is required")
    return v


# PUBLIC_INTERFACE
class TagCreate(BaseModel):
    """Schema for creating a tag. Names are trimmed and lower-cased."""

    name: str = Field(..., min_length=1, max_length=30)
    color: str = Field(default="#6B7280", max_length=20)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: Any) -> Any:
        return _normalize_tag_name(v)


# PUBLIC_INTERFACE
class TagUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=30)
    color: Optional[str] = Field(default=None, max_length=20)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: Any) -> Any:
        return None if v is None else _normalize_tag_name(v)

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(include=self.model_fields_set)
        return {k: v for k, v in data.items() if v is not None}


# PUBLIC_INTERFACE
class TagOut(BaseModel):
    """A tag with usage statistics."""

    id: int
    name: str
    color: str
    created_at: datetime
    updated_at: datetime
    usage_count: int = 0
    completed_task_count: int = 0
    completion_rate: float = 0.0


# PUBLIC_INTERFACE
class TagDetail(TagOut):
    tasks: List[TaskOut] = Field(default_factory=list)


# PUBLIC_INTERFACE
class TagDeleteResult(BaseModel):
    message: str
    affected_tasks: int


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class Overview(BaseModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    in_progress_tasks: int
    overdue_tasks: int
    tasks_with_due_date: int
    completion_rate: float


class PriorityCount(BaseModel):
    priority: Priority
    count: int


class CategoryCount(BaseModel):
    category_id: Optional[int] = None
    category: str
    color: str
    icon: str
    count: int


# PUBLIC_INTERFACE
class OverviewOut(BaseModel):
    overview: Overview
    priority_distribution: List[PriorityCount]
    category_distribution: List[CategoryCount]
    period: str


class TrendPointOut(BaseModel):
    period: str
    created: int
    completed: int


# PUBLIC_INTERFACE
class TrendsOut(BaseModel):
    trends: List[TrendPointOut]
    period: str
    granularity: str


class ProductiveDay(BaseModel):
    day: str
    completed_tasks: int


class StreaksOut(BaseModel):
    current: int
    longest: int


# PUBLIC_INTERFACE
class ProductivityOut(BaseModel):
    avg_completion_time_hours: float
    avg_time_by_priority: Dict[str, float]
    productive_days: List[ProductiveDay]
    streaks: StreaksOut
    period: str


class CategoryAnalytics(BaseModel):
    id: int
    name: str
    color: str
    icon: str
    total_tasks: int
    completed_tasks: int
    completion_rate: float
    priority_distribution: Dict[str, int]
    avg_completion_time_hours: float


# PUBLIC_INTERFACE
class CategoryAnalyticsOut(BaseModel):
    categories: List[CategoryAnalytics]
    period: str


# ---------------------------------------------------------------------------
# Uploads and counters
# ---------------------------------------------------------------------------


class UploadedFile(BaseModel):
    filename: str
    original_name: Optional[str] = None
    size: int
    mimetype: str
    url: str


# PUBLIC_INTERFACE
class UploadOut(BaseModel):
    message: str
    file: UploadedFile


# PUBLIC_INTERFACE
class LifetimeCountersOut(BaseModel):
    """All-time totals; deleting tasks never lowers them."""

    tasks_created: int
    tasks_completed: int
