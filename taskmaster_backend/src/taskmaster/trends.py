from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .utils import to_local_naive


# PUBLIC_INTERFACE
class Granularity(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


# PUBLIC_INTERFACE
@dataclass
class TrendPoint:
    period: str
    created: int = 0
    completed: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# PUBLIC_INTERFACE
def bucket_key(ts: datetime, granularity: Granularity) -> str:
    """
    Label of the bucket containing ``ts``. Labels are zero-padded so string
    order equals time order. Weeks use the ISO year and ISO week number.
    """
    local = to_local_naive(ts)
    if granularity is Granularity.HOUR:
        return local.strftime("%Y-%m-%d %H:00")
    if granularity is Granularity.WEEK:
        iso_year, iso_week, _ = local.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    if granularity is Granularity.MONTH:
        return local.strftime("%Y-%m")
    return local.strftime("%Y-%m-%d")


# PUBLIC_INTERFACE
def aggregate_trends(
    tasks: Iterable[Mapping[str, Any]],
    granularity: Granularity = Granularity.DAY,
    since: Optional[datetime] = None,
) -> List[TrendPoint]:
    """
    Bucket task creations and completions into a time series.

    Tasks created before ``since`` are ignored. Every remaining task adds one
    to ``created`` in the bucket of its created_at; completed tasks with a
    completed_at also add one to ``completed`` in that timestamp's bucket,
    which may be a different bucket. Only non-empty buckets are returned,
    ascending by label.
    """
    granularity = Granularity(granularity)
    buckets: Dict[str, TrendPoint] = {}

    def point(key: str) -> TrendPoint:
        if key not in buckets:
            buckets[key] = TrendPoint(period=key)
        return buckets[key]

    for task in tasks:
        created_at = to_local_naive(task.get("created_at"))
        if created_at is None:
            continue
        if since is not None and created_at < since:
            continue
        point(bucket_key(created_at, granularity)).created += 1
        completed_at = task.get("completed_at")
        if task.get("completed") and completed_at is not None:
            point(bucket_key(completed_at, granularity)).completed += 1

    return [buckets[key] for key in sorted(buckets)]
