from __future__ import annotations

from fastapi import APIRouter, Depends

from ..counters import LifetimeCounter, get_lifetime_counter
from ..schemas import LifetimeCountersOut

router = APIRouter(
    prefix="/api/v1/counters",
    tags=["counters"],
)


# PUBLIC_INTERFACE
@router.get(
    "/lifetime",
    response_model=LifetimeCountersOut,
    summary="Lifetime Counters",
    description="All-time numbers of tasks created and completed. Deleting tasks never lowers them.",
)
def lifetime(counter: LifetimeCounter = Depends(get_lifetime_counter)) -> LifetimeCountersOut:
    return LifetimeCountersOut(**counter.snapshot())
