from __future__ import annotations

from typing import Any, Optional


class TaskmasterError(Exception):
    """
    Base class for domain errors. Each subclass maps to one HTTP status and
    error label in main.py.
    """

    status_code: int = 500
    error: str = "InternalError"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


# PUBLIC_INTERFACE
class ValidationError(TaskmasterError):
    """Input was well-formed but violates a business rule."""

    status_code = 400
    error = "ValidationError"


# PUBLIC_INTERFACE
class NotFoundError(TaskmasterError):
    """An unknown task, category or tag id was referenced."""

    status_code = 404
    error = "NotFound"


# PUBLIC_INTERFACE
class ConflictError(TaskmasterError):
    """Duplicate names, or deleting a category that still owns tasks."""

    status_code = 409
    error = "Conflict"


# PUBLIC_INTERFACE
class AnalyticsError(TaskmasterError):
    """An analytics payload could not be built. The cause is only logged."""

    status_code = 500
    error = "InternalError"
