"""
Consecutive-day completion streaks.

A day is a calendar date in the server's local timezone, not a rolling 24h
window. Several completions on the same date count as one day.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from .utils import to_local_naive


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Streaks:
    current: int = 0
    longest: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _completion_days(timestamps: Iterable[Optional[datetime]]) -> List[date]:
    """Distinct local calendar dates, most recent first."""
    days = {to_local_naive(ts).date() for ts in timestamps if ts is not None}
    return sorted(days, reverse=True)


# PUBLIC_INTERFACE
def calculate_streaks(
    timestamps: Iterable[Optional[datetime]],
    today: Optional[Union[date, datetime]] = None,
) -> Streaks:
    """
    Compute current and longest streaks from completion timestamps.

    Timestamps are expected most-recent-first but are re-sorted, so any order
    works; ``None`` entries are skipped. ``longest`` is the longest run of
    consecutive dates seen. ``current`` is the run anchored at the most recent
    completion date, or 0 once that date is older than yesterday.
    """
    days = _completion_days(timestamps)
    if not days:
        return Streaks()

    longest = 0
    run = 1
    current: Optional[int] = None
    for previous, day in zip(days, days[1:]):
        if (previous - day).days == 1:
            run += 1
            continue
        if current is None:
            current = run
        longest = max(longest, run)
        run = 1
    if current is None:
        current = run
    longest = max(longest, run)

    reference = today or date.today()
    if isinstance(reference, datetime):
        reference = reference.date()
    if (reference - days[0]).days > 1:
        current = 0
    return Streaks(current=current, longest=longest)
