from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ..models import Todo, TodoPriority, as_utc
from ..repositories.base import TodoRepository
from ..repositories.factory import RepositoryFactory
from .base import CachedService

_SortKey = Callable[[Todo], object]


# PUBLIC_INTERFACE
class TodoService(CachedService[Todo, TodoRepository]):
    """Todo list state: cache, counts, mutations and a chosen display order."""

    def __init__(self, factory: RepositoryFactory) -> None:
        super().__init__(factory)
        self._order: Optional[Tuple[_SortKey, bool]] = None

    async def _create_repository(self) -> TodoRepository:
        return await self._factory.create_todo_repository()

    def _sorted(self, items: List[Todo]) -> List[Todo]:
        if self._order is None:
            return list(items)
        key, reverse = self._order
        return sorted(items, key=key, reverse=reverse)

    @property
    def todos(self) -> List[Todo]:
        return self.items

    @property
    def completed_todos(self) -> List[Todo]:
        return [t for t in self.items if t.is_completed]

    @property
    def incomplete_todos(self) -> List[Todo]:
        return [t for t in self.items if not t.is_completed]

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self._items if t.is_completed)

    @property
    def incomplete_count(self) -> int:
        return sum(1 for t in self._items if not t.is_completed)

    @property
    def total_count(self) -> int:
        return len(self._items)

    def get_todo_by_id(self, todo_id: str) -> Optional[Todo]:
        return self.get_by_id(todo_id)

    async def add_todo(
        self,
        title: str,
        description: Optional[str] = None,
        priority: TodoPriority = TodoPriority.LOW,
        tags: Optional[Iterable[str]] = None,
        due_date: Optional[datetime] = None,
    ) -> Todo:
        """Create, persist and return a new todo."""
        if not title or not title.strip():
            raise ValueError("title must not be blank")
        todo = Todo(
            title=title.strip(),
            description=description.strip() if description is not None else None,
            priority=priority,
            tags=[t.strip() for t in (tags or []) if t.strip()],
            due_date=as_utc(due_date),
        )
        await self.repository.add(todo)
        await self._reload()
        return todo.model_copy(deep=True)

    async def update_todo(self, todo: Todo) -> bool:
        ok = await self.repository.update(todo)
        if ok:
            await self._reload()
        return ok

    async def toggle_todo_completion(self, todo_id: str) -> bool:
        ok = await self.repository.toggle_completion(todo_id)
        if ok:
            await self._reload()
        return ok

    async def delete_todo(self, todo_id: str) -> bool:
        ok = await self.repository.delete(todo_id)
        if ok:
            await self._reload()
        return ok

    async def delete_completed_todos(self) -> int:
        count = await self.repository.delete_completed()
        await self._reload()
        return count

    async def mark_all_as_completed(self) -> int:
        count = await self.repository.mark_all_as_completed()
        await self._reload()
        return count

    async def mark_all_as_incomplete(self) -> int:
        count = await self.repository.mark_all_as_incomplete()
        await self._reload()
        return count

    async def clear_all_todos(self) -> int:
        return await self._clear_all()

    def _apply_order(self, key: _SortKey, reverse: bool) -> None:
        self._order = (key, reverse)
        self._items = self._sorted(self._items)
        self.notify_listeners()

    def sort_by_creation_date(self, ascending: bool = False) -> None:
        self._apply_order(lambda t: t.created_at, not ascending)

    def sort_by_update_date(self, ascending: bool = False) -> None:
        self._apply_order(lambda t: t.updated_at, not ascending)

    def sort_by_completion_status(self, completed_first: bool = False) -> None:
        # sorted() is stable, so todos keep their relative order within each group
        self._apply_order(lambda t: t.is_completed, completed_first)
