"""
Single write path for the completed / completed_at / status triple.

Callers hand over whatever subset of the three fields a request touched and
get back a consistent triple. Nothing else in the code base sets them.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError
from .models import Status


# PUBLIC_INTERFACE
def resolve_completion(
    existing: Optional[Mapping[str, Any]],
    patch: Mapping[str, Any],
    now: datetime,
) -> Dict[str, Any]:
    """
    Derive ``status``, ``completed`` and ``completed_at`` from a partial patch.

    Args:
        existing: The stored task, or None when creating.
        patch: May contain ``status`` and/or ``completed``; other keys are ignored.
        now: Timestamp recorded on a not-completed -> completed transition.

    Returns:
        The three fields to write. Empty when an existing task's completion
        state is untouched by the patch.

    Raises:
        ValidationError: ``status`` and ``completed`` were both given and disagree.
    """
    status = patch.get("status")
    completed = patch.get("completed")
    was_completed = bool(existing and existing.get("completed"))
    current_status = Status(existing["status"]) if existing else Status.PENDING

    if status is None and completed is None:
        if existing is not None:
            return {}
        completed = False

    if status is not None:
        status = Status(status)
        target = status is Status.COMPLETED
        if completed is not None and bool(completed) != target:
            raise ValidationError(
                f"completed={str(bool(completed)).lower()} contradicts status {status.value}",
                detail={"status": status.value, "completed": bool(completed)},
            )
    else:
        target = bool(completed)
        if target:
            status = Status.COMPLETED
        elif current_status is Status.COMPLETED:
            status = Status.PENDING
        else:
            status = current_status

    if not target:
        completed_at = None
    elif was_completed and existing.get("completed_at") is not None:
        completed_at = existing["completed_at"]
    else:
        completed_at = now

    return {"status": status, "completed": target, "completed_at": completed_at}


# PUBLIC_INTERFACE
def is_completion_transition(before: Optional[Mapping[str, Any]], after: Mapping[str, Any]) -> bool:
    """True when ``after`` is completed and ``before`` was missing or not completed."""
    return bool(after.get("completed")) and not (before and before.get("completed"))
