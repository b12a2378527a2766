from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from ..errors import RepositoryNotInitializedError, StoreError
from ..models import Note, Record, TaskTimer, Todo

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Record)


# PUBLIC_INTERFACE
class BaseRepository(ABC, Generic[T]):
    """
    Abstract repository contract shared by every entity type and backend.

    Behavior:
    - initialize() must succeed before any other call.
    - get_by_id() returns None for a missing id; it never raises for absence.
    - add() requires an id the repository does not hold yet (DuplicateItemError otherwise).
    - update() and delete() return False when the id is missing.
    - Store failures surface as StoreError.
    """

    def __init__(self) -> None:
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Prepare the backend. Safe to call again."""
        await self._initialize()
        self._initialized = True

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RepositoryNotInitializedError(f"{type(self).__name__} used before initialize()")

    @abstractmethod
    async def _initialize(self) -> None:
        """Backend-specific preparation."""

    @abstractmethod
    async def get_all(self) -> List[T]:
        """Return every stored item; order is not significant."""

    @abstractmethod
    async def get_by_id(self, item_id: str) -> Optional[T]:
        """Return the item with this id, or None."""

    @abstractmethod
    async def add(self, item: T) -> T:
        """Persist a new item and return it."""

    @abstractmethod
    async def update(self, item: T) -> bool:
        """Replace the stored item sharing item.id. Return False if there is none."""

    @abstractmethod
    async def delete(self, item_id: str) -> bool:
        """Delete the item with this id. Return False if there is none."""

    async def _apply_each(
        self,
        items: Iterable[T],
        action: Callable[[T], Awaitable[bool]],
        description: str,
    ) -> int:
        """
        Run ``action`` for every item independently and count the successes.

        A store failure on one item is logged and does not stop the others;
        nothing is rolled back.
        """
        succeeded = 0
        for item in items:
            try:
                if await action(item):
                    succeeded += 1
            except (StoreError, asyncio.TimeoutError) as exc:
                logger.warning("%s: %s failed for %s: %s", type(self).__name__, description, item.id, exc)
        return succeeded


# PUBLIC_INTERFACE
class TodoRepository(BaseRepository[Todo]):
    """Todo repository with completion queries and bulk operations."""

    async def get_completed(self) -> List[Todo]:
        return [t for t in await self.get_all() if t.is_completed]

    async def get_incomplete(self) -> List[Todo]:
        return [t for t in await self.get_all() if not t.is_completed]

    async def toggle_completion(self, todo_id: str) -> bool:
        todo = await self.get_by_id(todo_id)
        if todo is None:
            return False
        todo.toggle_completion()
        return await self.update(todo)

    async def delete_completed(self) -> int:
        """Delete every completed todo. Return how many were deleted."""
        return await self._apply_each(await self.get_completed(), lambda t: self.delete(t.id), "delete")

    async def mark_all_as_completed(self) -> int:
        """Complete every open todo. Return how many changed."""

        async def complete(todo: Todo) -> bool:
            todo.complete()
            return await self.update(todo)

        return await self._apply_each(await self.get_incomplete(), complete, "complete")

    async def mark_all_as_incomplete(self) -> int:
        """Reopen every completed todo. Return how many changed."""

        async def reopen(todo: Todo) -> bool:
            todo.uncomplete()
            return await self.update(todo)

        return await self._apply_each(await self.get_completed(), reopen, "reopen")


# PUBLIC_INTERFACE
class TimerRepository(BaseRepository[TaskTimer]):
    """Timer repository with running-state queries and bulk stop."""

    async def get_running(self) -> List[TaskTimer]:
        return [t for t in await self.get_all() if t.is_running]

    async def toggle_timer(self, timer_id: str) -> Optional[TaskTimer]:
        """
        Flip a timer's running state.

        A running timer is stopped and returned. A stopped timer is left as is
        and a new running session with the same name is added and returned.
        Returns None if the id is unknown.
        """
        timer = await self.get_by_id(timer_id)
        if timer is None:
            return None
        if timer.is_running:
            timer.stop()
            return timer if await self.update(timer) else None
        session = timer.create_new_session()
        await self.add(session)
        return session

    async def stop_all_running(self) -> int:
        """Stop every running timer. Return how many were stopped."""

        async def stop(timer: TaskTimer) -> bool:
            timer.stop()
            return await self.update(timer)

        return await self._apply_each(await self.get_running(), stop, "stop")


# PUBLIC_INTERFACE
class NoteRepository(BaseRepository[Note]):
    """Note repository; the base contract is all notes need."""
