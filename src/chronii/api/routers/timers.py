from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...models import utcnow
from ...services import TimerService
from ..dependencies import get_timer_service
from ..schemas import CountOut, TimerCreate, TimerGroupOut, TimerOut, TotalDurationOut
from ..utils import require_found

router = APIRouter(
    prefix="/api/v1/timers",
    tags=["timers"],
)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TimerOut],
    summary="List Timers",
    description="List timer sessions; `running` filters to running or stopped timers.",
)
async def list_timers(
    running: Optional[bool] = Query(None, description="Filter by running state"),
    service: TimerService = Depends(get_timer_service),
) -> List[TimerOut]:
    now = utcnow()
    timers = service.timers
    if running is not None:
        timers = [t for t in timers if t.is_running == running]
    return [TimerOut.from_timer(t, now) for t in timers]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TimerOut,
    status_code=status.HTTP_201_CREATED,
    summary="Start Timer",
    description="Start a new running timer for the named task.",
)
async def start_timer(payload: TimerCreate, service: TimerService = Depends(get_timer_service)) -> TimerOut:
    return TimerOut.from_timer(await service.add_timer(payload.name))


# PUBLIC_INTERFACE
@router.post(
    "/stop-all",
    response_model=CountOut,
    summary="Stop All Timers",
    description="Stop every running timer and return how many were stopped.",
)
async def stop_all(service: TimerService = Depends(get_timer_service)) -> CountOut:
    return CountOut(count=await service.stop_all_running_timers())


# PUBLIC_INTERFACE
@router.get(
    "/total-duration",
    response_model=TotalDurationOut,
    summary="Total Duration",
    description="Sum the durations of the given timers; unknown ids are ignored.",
)
async def total_duration(
    ids: List[str] = Query([], description="Timer ids to add up"),
    service: TimerService = Depends(get_timer_service),
) -> TotalDurationOut:
    total = service.calculate_total_duration(ids)
    return TotalDurationOut(ids=ids, total_seconds=total.total_seconds())


# PUBLIC_INTERFACE
@router.get(
    "/groups",
    response_model=List[TimerGroupOut],
    summary="Group Timers",
    description="Timers grouped by the day or the (Sunday-based) week they started, newest first.",
)
async def group_timers(
    by: str = Query("day", description="'day' or 'week'"),
    service: TimerService = Depends(get_timer_service),
) -> List[TimerGroupOut]:
    period = by.strip().lower()
    if period not in {"day", "week"}:
        raise HTTPException(status_code=400, detail="by must be 'day' or 'week'")
    now = utcnow()
    groups = service.group_by_day(now) if period == "day" else service.group_by_week(now)
    return [
        TimerGroupOut(
            key=g.key,
            total_seconds=g.total_duration.total_seconds(),
            timers=[TimerOut.from_timer(t, now) for t in g.timers],
        )
        for g in groups
    ]


# PUBLIC_INTERFACE
@router.get(
    "/{timer_id}",
    response_model=TimerOut,
    summary="Get Timer",
    responses={404: {"description": "Timer not found"}},
)
async def get_timer(timer_id: str, service: TimerService = Depends(get_timer_service)) -> TimerOut:
    return TimerOut.from_timer(require_found(service.get_timer_by_id(timer_id), "Timer"))


# PUBLIC_INTERFACE
@router.post(
    "/{timer_id}/toggle",
    response_model=TimerOut,
    summary="Toggle Timer",
    description=(
        "Stop a running timer and return it, or start a new session for a stopped "
        "timer's task and return the new session."
    ),
    responses={404: {"description": "Timer not found"}},
)
async def toggle_timer(timer_id: str, service: TimerService = Depends(get_timer_service)) -> TimerOut:
    return TimerOut.from_timer(require_found(await service.toggle_timer(timer_id), "Timer"))


# PUBLIC_INTERFACE
@router.delete(
    "/{timer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Timer",
    responses={
        204: {"description": "Timer deleted"},
        404: {"description": "Timer not found"},
    },
)
async def delete_timer(timer_id: str, service: TimerService = Depends(get_timer_service)) -> Response:
    if not await service.delete_timer(timer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timer not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
