from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..models import TaskTimer, total_duration, utcnow
from ..repositories.base import TimerRepository
from ..timer_grouping import TimerGroup, group_by_day, group_by_week
from .base import CachedService


# PUBLIC_INTERFACE
class TimerService(CachedService[TaskTimer, TimerRepository]):
    """Task timer state: cache, start/stop, totals and day/week grouping."""

    async def _create_repository(self) -> TimerRepository:
        return await self._factory.create_timer_repository()

    @property
    def timers(self) -> List[TaskTimer]:
        return self.items

    @property
    def running_timers(self) -> List[TaskTimer]:
        return [t for t in self.items if t.is_running]

    def get_timer_by_id(self, timer_id: str) -> Optional[TaskTimer]:
        return self.get_by_id(timer_id)

    async def add_timer(self, name: str) -> TaskTimer:
        """Start, persist and return a new running timer."""
        if not name or not name.strip():
            raise ValueError("name must not be blank")
        timer = TaskTimer(name=name.strip(), start_time=utcnow())
        await self.repository.add(timer)
        await self._reload()
        return timer.model_copy(deep=True)

    async def update_timer(self, timer: TaskTimer) -> bool:
        ok = await self.repository.update(timer)
        if ok:
            await self._reload()
        return ok

    async def toggle_timer(self, timer_id: str) -> Optional[TaskTimer]:
        """
        Stop a running timer, or start a new session for a stopped one.

        Returns the stopped timer or the new session, or None for an unknown id.
        """
        result = await self.repository.toggle_timer(timer_id)
        await self._reload()
        return result

    async def delete_timer(self, timer_id: str) -> bool:
        ok = await self.repository.delete(timer_id)
        if ok:
            await self._reload()
        return ok

    async def stop_all_running_timers(self) -> int:
        count = await self.repository.stop_all_running()
        await self._reload()
        return count

    async def clear_all_timers(self) -> int:
        return await self._clear_all()

    def calculate_total_duration(self, timer_ids: Iterable[str], now: Optional[datetime] = None) -> timedelta:
        return total_duration(self._items, timer_ids, now)

    def group_by_day(self, now: Optional[datetime] = None) -> List[TimerGroup]:
        return group_by_day(self.items, now)

    def group_by_week(self, now: Optional[datetime] = None) -> List[TimerGroup]:
        return group_by_week(self.items, now)
