"""
Read-time derived state for tasks.

OVERDUE depends on the wall clock, so it is computed on every read and never
written back to storage. Callers pass ``now`` explicitly.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping

from .models import EffectivePriority, enum_value

PRIORITY_RANK: Dict[EffectivePriority, int] = {
    EffectivePriority.OVERDUE: 5,
    EffectivePriority.URGENT: 4,
    EffectivePriority.HIGH: 3,
    EffectivePriority.MEDIUM: 2,
    EffectivePriority.LOW: 1,
}


# PUBLIC_INTERFACE
def is_overdue(task: Mapping[str, Any], now: datetime) -> bool:
    """True when the task has a due date strictly before ``now`` and is not completed."""
    due = task.get("due_date")
    return due is not None and not task.get("completed", False) and due < now


# PUBLIC_INTERFACE
def effective_priority(task: Mapping[str, Any], now: datetime) -> EffectivePriority:
    """
    Return OVERDUE for genuinely overdue tasks, otherwise the stored priority.

    A task due exactly at ``now`` is not overdue. Completed tasks always keep
    their stored priority.
    """
    if is_overdue(task, now):
        return EffectivePriority.OVERDUE
    return EffectivePriority(enum_value(task["priority"]))


# PUBLIC_INTERFACE
def priority_rank(task: Mapping[str, Any], now: datetime) -> int:
    """Numeric rank of the task's effective priority (OVERDUE=5 .. LOW=1)."""
    return PRIORITY_RANK[effective_priority(task, now)]


# PUBLIC_INTERFACE
def stamp(task: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Return a copy of ``task`` carrying ``effective_priority`` and ``is_overdue``."""
    stamped = dict(task)
    stamped["effective_priority"] = effective_priority(task, now)
    stamped["is_overdue"] = is_overdue(task, now)
    return stamped
