from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..analytics import AnalyticsService, Period, get_analytics_service
from ..schemas import CategoryAnalyticsOut, OverviewOut, ProductivityOut, TrendsOut
from ..trends import Granularity

router = APIRouter(
    prefix="/api/v1/analytics",
    tags=["analytics"],
)

_FAILED = {500: {"description": "Analytics could not be computed; nothing partial is returned"}}


# PUBLIC_INTERFACE
@router.get(
    "/overview",
    response_model=OverviewOut,
    summary="Overview",
    description=(
        "Task counts, completion rate, and distributions by stored priority and "
        "category for tasks created within the period."
    ),
    responses=_FAILED,
)
def overview(
    period: Period = Query(Period.ALL, description="today, week, month, year or all"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> OverviewOut:
    return OverviewOut(**service.overview(period))


# PUBLIC_INTERFACE
@router.get(
    "/trends",
    response_model=TrendsOut,
    summary="Trends",
    description="Created and completed counts per time bucket.",
    responses=_FAILED,
)
def trends(
    period: Period = Query(Period.WEEK, description="today, week, month, year or all"),
    granularity: Granularity = Query(Granularity.DAY, description="hour, day, week or month"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TrendsOut:
    return TrendsOut(**service.trends(period, granularity))


# PUBLIC_INTERFACE
@router.get(
    "/productivity",
    response_model=ProductivityOut,
    summary="Productivity",
    description="Average completion times, most productive weekdays and completion streaks.",
    responses=_FAILED,
)
def productivity(
    period: Period = Query(Period.MONTH, description="today, week, month, year or all"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> ProductivityOut:
    return ProductivityOut(**service.productivity(period))


# PUBLIC_INTERFACE
@router.get(
    "/categories",
    response_model=CategoryAnalyticsOut,
    summary="Category Analytics",
    description="Per-category totals, completion rate, priority mix and completion time.",
    responses=_FAILED,
)
def categories(
    period: Period = Query(Period.ALL, description="today, week, month, year or all"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> CategoryAnalyticsOut:
    return CategoryAnalyticsOut(**service.categories(period))
