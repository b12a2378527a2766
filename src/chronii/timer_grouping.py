from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from .models import TaskTimer, as_utc, utcnow


# PUBLIC_INTERFACE
@dataclass
class TimerGroup:
    """Timers sharing a day or a week, newest first, with their summed duration."""

    key: date
    timers: List[TaskTimer] = field(default_factory=list)
    total_duration: timedelta = timedelta(0)


def start_of_week(day: date) -> date:
    """First day of the week containing ``day``; weeks start on Sunday."""
    if isinstance(day, datetime):
        day = day.date()
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _group(timers: Iterable[TaskTimer], key_of: Callable[[TaskTimer], date], now: Optional[datetime]) -> List[TimerGroup]:
    current = as_utc(now) or utcnow()
    groups: Dict[date, TimerGroup] = {}
    for timer in timers:
        key = key_of(timer)
        group = groups.get(key)
        if group is None:
            group = groups[key] = TimerGroup(key=key)
        group.timers.append(timer)
        group.total_duration += timer.duration(current)
    for group in groups.values():
        group.timers.sort(key=lambda t: t.start_time, reverse=True)
    return sorted(groups.values(), key=lambda g: g.key, reverse=True)


# PUBLIC_INTERFACE
def group_by_day(timers: Iterable[TaskTimer], now: Optional[datetime] = None) -> List[TimerGroup]:
    """Group timers by the (UTC) day they started, newest day first."""
    return _group(timers, lambda t: t.start_time.date(), now)


# PUBLIC_INTERFACE
def group_by_week(timers: Iterable[TaskTimer], now: Optional[datetime] = None) -> List[TimerGroup]:
    """Group timers by the Sunday-based week they started in, newest week first."""
    return _group(timers, lambda t: start_of_week(t.start_time.date()), now)
