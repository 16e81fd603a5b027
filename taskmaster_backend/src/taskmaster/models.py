from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, TypedDict


# PUBLIC_INTERFACE
class Status(str, Enum):
    """Lifecycle status of a task."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Priority values that may be stored on a task."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# PUBLIC_INTERFACE
class EffectivePriority(str, Enum):
    """
    Priority as shown to clients. Identical to Priority plus the read-time
    OVERDUE state, which is never persisted.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
    OVERDUE = "OVERDUE"


def enum_value(value: Any) -> Any:
    """Plain value of an enum member; anything else is returned unchanged."""
    return value.value if isinstance(value, Enum) else value


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a task for non-ORM storage
    backends.

    Fields:
    - id: Unique integer identifier
    - title: Short title (1..100 chars, trimmed on input via schemas)
    - description: Optional free text, markup is not interpreted
    - status: Status value, kept consistent with completed
    - priority: Stored Priority value (never OVERDUE)
    - completed: Boolean completion flag
    - completed_at: Set on completion, cleared when un-completed
    - due_date: Optional due datetime; date-only inputs are end-of-day
    - category_id: Optional owning category
    - tag_ids: Ids of attached tags
    - image_url: Optional URL of an uploaded attachment
    - position: Manual ordering hint
    - created_at / updated_at: Local timestamps managed by the repository
    """

    id: int
    title: str
    description: Optional[str]
    status: Status
    priority: Priority
    completed: bool
    completed_at: Optional[datetime]
    due_date: Optional[datetime]
    category_id: Optional[int]
    tag_ids: List[int]
    image_url: Optional[str]
    position: int
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class CategoryEntity(TypedDict):
    """A named grouping of tasks. Names are unique."""

    id: int
    name: str
    description: Optional[str]
    color: str
    icon: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class TagEntity(TypedDict):
    """A label attachable to many tasks. Names are stored trimmed and lower-cased."""

    id: int
    name: str
    color: str
    created_at: datetime
    updated_at: datetime


TASK_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "completed",
    "completed_at",
    "due_date",
    "category_id",
    "tag_ids",
    "image_url",
    "position",
)
