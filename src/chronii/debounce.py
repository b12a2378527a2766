from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Set, Tuple

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[None]]


# PUBLIC_INTERFACE
class Debouncer:
    """
    Per-key delayed actions that restart their delay on every call.

    call(key, action) schedules ``action`` to run ``delay`` seconds later on
    the running event loop. Calling again with the same key before then
    drops the earlier action and starts the delay over. Failures of an
    action are logged, never raised into the loop.
    """

    def __init__(self, delay: float) -> None:
        self._delay = max(float(delay), 0.0)
        self._scheduled: Dict[Hashable, Tuple[asyncio.Task, Action]] = {}
        self._running: Set[asyncio.Task] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> Tuple[Hashable, ...]:
        """Keys with an action waiting for its delay to expire."""
        return tuple(self._scheduled)

    def call(self, key: Hashable, action: Action) -> None:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._run_later(key, action))
        self._scheduled[key] = (task, action)

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending action for ``key``. Return True if there was one."""
        entry = self._scheduled.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._scheduled):
            self.cancel(key)

    async def flush(self) -> None:
        """Run every pending action now and wait for all actions in progress."""
        pending = list(self._scheduled.items())
        self._scheduled.clear()
        for key, (task, action) in pending:
            task.cancel()
            await self._execute(key, action)
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def _run_later(self, key: Hashable, action: Action) -> None:
        await asyncio.sleep(self._delay)
        self._scheduled.pop(key, None)
        task = asyncio.current_task()
        if task is not None:
            self._running.add(task)
        try:
            await self._execute(key, action)
        finally:
            if task is not None:
                self._running.discard(task)

    @staticmethod
    async def _execute(key: Hashable, action: Action) -> None:
        try:
            await action()
        except Exception:
            logger.exception("Debounced action for %r failed", key)
