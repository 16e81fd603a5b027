"""
Display ordering for task lists.

Incomplete tasks always come before completed ones. Inside each partition the
order comes from ``COMPARATORS``, a table of pure ``(a, b, now) -> int``
functions keyed by sort field; the sort direction is applied afterwards and
never flips the completion partition.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from .derived import priority_rank

T = TypeVar("T", bound=Mapping[str, Any])

Comparator = Callable[[Mapping[str, Any], Mapping[str, Any], datetime], int]


# PUBLIC_INTERFACE
class SortField(str, Enum):
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    POSITION = "position"
    CREATED_AT = "created_at"


# PUBLIC_INTERFACE
class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _compare(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _compare_nulls_last(a: Optional[Any], b: Optional[Any]) -> int:
    # Nulls rank above every value, so flipping for desc puts them first.
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return _compare(a, b)


def _by_priority(a: Mapping[str, Any], b: Mapping[str, Any], now: datetime) -> int:
    return _compare(priority_rank(a, now), priority_rank(b, now))


def _by_due_date(a: Mapping[str, Any], b: Mapping[str, Any], now: datetime) -> int:
    # Both tasks share a partition here. A finished task is ordered by when it
    # was last touched, its due date no longer matters.
    if a.get("completed"):
        return _compare(a["updated_at"], b["updated_at"])
    return _compare_nulls_last(a.get("due_date"), b.get("due_date"))


def _by_position(a: Mapping[str, Any], b: Mapping[str, Any], now: datetime) -> int:
    return _compare(a.get("position") or 0, b.get("position") or 0)


def _by_created_at(a: Mapping[str, Any], b: Mapping[str, Any], now: datetime) -> int:
    return _compare(a["created_at"], b["created_at"])


COMPARATORS: Dict[SortField, Comparator] = {
    SortField.PRIORITY: _by_priority,
    SortField.DUE_DATE: _by_due_date,
    SortField.POSITION: _by_position,
    SortField.CREATED_AT: _by_created_at,
}


def _completion_partition(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
    return _compare(bool(a.get("completed")), bool(b.get("completed")))


def _coerce_field(sort_field: Any) -> SortField:
    try:
        return SortField(sort_field)
    except ValueError:
        return SortField.CREATED_AT


# PUBLIC_INTERFACE
def sort_tasks(
    tasks: Sequence[T],
    sort_field: Any = SortField.CREATED_AT,
    sort_order: Any = SortOrder.DESC,
    now: Optional[datetime] = None,
) -> List[T]:
    """
    Return ``tasks`` in display order.

    - Incomplete tasks precede completed tasks regardless of field or order.
    - priority compares effective priority rank (OVERDUE highest).
    - due_date puts undated incomplete tasks last for asc and first for desc;
      completed tasks are compared by updated_at instead.
    - position compares the manual ordering hint.
    - created_at, and any unknown field, compares creation time.

    Ties keep their input order.
    """
    if not tasks:
        return []
    reference = now or datetime.now()
    comparator = COMPARATORS[_coerce_field(sort_field)]
    descending = SortOrder(sort_order) is SortOrder.DESC

    def ordering(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
        partition = _completion_partition(a, b)
        if partition:
            return partition
        result = comparator(a, b, reference)
        return -result if descending else result

    return sorted(tasks, key=cmp_to_key(ordering))


# PUBLIC_INTERFACE
def paginate(items: Sequence[T], limit: int, offset: int) -> List[T]:
    """Slice an already sorted sequence. Never sort a page after slicing it."""
    start = max(offset, 0)
    return list(items[start:start + max(limit, 0)])
