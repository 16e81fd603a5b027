"""
Analytics Summary Builder.

Each ``build_*`` function composes one analytics payload from repository
queries plus the streak and trend calculators. AnalyticsService runs them
all-or-nothing: any failure is logged with its traceback and surfaces as a
single AnalyticsError, never as a partial payload.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from fastapi import Depends

from .errors import AnalyticsError
from .models import Priority, Status
from .repositories import Repository, TaskFilter, get_repository
from .services import Clock, get_clock
from .settings import get_settings
from .streaks import calculate_streaks
from .trends import Granularity, aggregate_trends

logger = logging.getLogger(__name__)

R = TypeVar("R")

UNCATEGORIZED = {"category_id": None, "category": "Uncategorized", "color": "#6B7280", "icon": "📋"}

# Sunday first, matching the usual calendar week display.
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


# PUBLIC_INTERFACE
class Period(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


# PUBLIC_INTERFACE
def period_start(period: Period, now: datetime) -> Optional[datetime]:
    """
    Lower bound on created_at for a period, or None for 'all'.

    'week' is the trailing seven days; the others start at the calendar
    boundary (midnight today, first of the month, January 1).
    """
    period = Period(period)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period is Period.TODAY:
        return midnight
    if period is Period.WEEK:
        return now - timedelta(days=7)
    if period is Period.MONTH:
        return midnight.replace(day=1)
    if period is Period.YEAR:
        return midnight.replace(month=1, day=1)
    return None


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


def _hours(task: Mapping[str, Any]) -> Optional[float]:
    created_at, completed_at = task.get("created_at"), task.get("completed_at")
    if created_at is None or completed_at is None:
        return None
    return (completed_at - created_at).total_seconds() / 3600


def _average_hours(tasks: Iterable[Mapping[str, Any]]) -> float:
    """Mean completion time in hours over completed tasks with both timestamps."""
    durations = [h for h in (_hours(t) for t in tasks if t.get("completed")) if h is not None]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations), 2)


# PUBLIC_INTERFACE
def build_overview(repo: Repository, period: Period, now: datetime) -> Dict[str, Any]:
    """Counts, completion rate, and priority and category distributions for a period."""
    base = TaskFilter(created_since=period_start(period, now))

    total = repo.count_tasks(base)
    completed = repo.count_tasks(replace(base, completed=True))
    overview = {
        "total_tasks": total,
        "completed_tasks": completed,
        "pending_tasks": repo.count_tasks(replace(base, status=Status.PENDING)),
        "in_progress_tasks": repo.count_tasks(replace(base, status=Status.IN_PROGRESS)),
        "overdue_tasks": repo.count_tasks(replace(base, completed=False, due_before=now)),
        "tasks_with_due_date": repo.count_tasks(replace(base, has_due_date=True)),
        "completion_rate": _rate(completed, total),
    }

    # Stored priority, not effective priority.
    by_priority = {Priority(row["key"]): row["count"] for row in repo.group_count(base, "priority")}
    priority_distribution = [
        {"priority": p, "count": by_priority.get(p, 0)} for p in Priority
    ]

    categories = {c["id"]: c for c in repo.list_categories()}
    category_distribution = []
    for row in repo.group_count(base, "category_id"):
        category = categories.get(row["key"])
        if category is None:
            entry = dict(UNCATEGORIZED)
        else:
            entry = {
                "category_id": category["id"],
                "category": category["name"],
                "color": category["color"],
                "icon": category["icon"],
            }
        entry["count"] = row["count"]
        category_distribution.append(entry)
    category_distribution.sort(key=lambda e: (-e["count"], e["category"]))

    return {
        "overview": overview,
        "priority_distribution": priority_distribution,
        "category_distribution": category_distribution,
        "period": Period(period).value,
    }


# PUBLIC_INTERFACE
def build_trends(
    repo: Repository,
    period: Period,
    granularity: Granularity,
    now: datetime,
) -> Dict[str, Any]:
    """Created/completed time series over tasks created within the period."""
    since = period_start(period, now)
    tasks = repo.list_tasks(TaskFilter(created_since=since))
    points = aggregate_trends(tasks, Granularity(granularity), since=since)
    return {
        "trends": [p.as_dict() for p in points],
        "period": Period(period).value,
        "granularity": Granularity(granularity).value,
    }


# PUBLIC_INTERFACE
def build_productivity(
    repo: Repository,
    period: Period,
    now: datetime,
    streak_window: int = 100,
) -> Dict[str, Any]:
    """
    Average completion time (overall and per stored priority), completions by
    weekday, and completion streaks.

    Completed tasks lacking completed_at are left out of every time-based
    figure. Streaks look at the ``streak_window`` most recent completions
    regardless of period.
    """
    since = period_start(period, now)
    completed = repo.list_tasks(
        TaskFilter(created_since=since, completed=True, completed_at_set=True)
    )

    avg_by_priority = {
        p.value: _average_hours(t for t in completed if t["priority"] == p) for p in Priority
    }

    weekday_counts: Dict[str, int] = {}
    for task in repo.list_tasks(TaskFilter(completed=True, completed_at_set=True)):
        completed_at = task["completed_at"]
        if since is not None and completed_at < since:
            continue
        name = WEEKDAY_NAMES[(completed_at.weekday() + 1) % 7]
        weekday_counts[name] = weekday_counts.get(name, 0) + 1
    productive_days = [
        {"day": day, "completed_tasks": weekday_counts[day]}
        for day in WEEKDAY_NAMES
        if day in weekday_counts
    ]
    productive_days.sort(key=lambda d: -d["completed_tasks"])

    streaks = calculate_streaks(repo.recent_completions(streak_window), today=now)

    return {
        "avg_completion_time_hours": _average_hours(completed),
        "avg_time_by_priority": avg_by_priority,
        "productive_days": productive_days,
        "streaks": streaks.as_dict(),
        "period": Period(period).value,
    }


# PUBLIC_INTERFACE
def build_category_analytics(repo: Repository, period: Period, now: datetime) -> Dict[str, Any]:
    """Per-category totals, completion rate, priority mix and completion time."""
    since = period_start(period, now)
    rows: List[Dict[str, Any]] = []
    for category in repo.list_categories():
        tasks = repo.list_tasks(TaskFilter(created_since=since, category_id=category["id"]))
        completed = sum(1 for t in tasks if t["completed"])
        distribution = {p.value: 0 for p in Priority}
        for task in tasks:
            distribution[Priority(task["priority"]).value] += 1
        rows.append(
            {
                "id": category["id"],
                "name": category["name"],
                "color": category["color"],
                "icon": category["icon"],
                "total_tasks": len(tasks),
                "completed_tasks": completed,
                "completion_rate": _rate(completed, len(tasks)),
                "priority_distribution": distribution,
                "avg_completion_time_hours": _average_hours(tasks),
            }
        )
    return {"categories": rows, "period": Period(period).value}


# PUBLIC_INTERFACE
class AnalyticsService:
    """Fail-closed facade over the build_* functions."""

    def __init__(self, repo: Repository, clock: Clock = datetime.now, streak_window: int = 100) -> None:
        self.repo = repo
        self.clock = clock
        self.streak_window = streak_window

    def _run(self, name: str, build: Callable[[], R]) -> R:
        try:
            return build()
        except Exception as e:
            logger.exception("Failed to build %s analytics", name)
            raise AnalyticsError(f"Failed to fetch {name} analytics") from e

    def overview(self, period: Period = Period.ALL) -> Dict[str, Any]:
        return self._run("overview", lambda: build_overview(self.repo, period, self.clock()))

    def trends(self, period: Period = Period.WEEK, granularity: Granularity = Granularity.DAY) -> Dict[str, Any]:
        return self._run("trends", lambda: build_trends(self.repo, period, granularity, self.clock()))

    def productivity(self, period: Period = Period.MONTH) -> Dict[str, Any]:
        return self._run(
            "productivity",
            lambda: build_productivity(self.repo, period, self.clock(), self.streak_window),
        )

    def categories(self, period: Period = Period.ALL) -> Dict[str, Any]:
        return self._run("category", lambda: build_category_analytics(self.repo, period, self.clock()))


# PUBLIC_INTERFACE
def get_analytics_service(
    repo: Repository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
) -> AnalyticsService:
    """FastAPI dependency building an AnalyticsService."""
    return AnalyticsService(repo, clock, get_settings().streak_window)
