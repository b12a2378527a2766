from __future__ import annotations

import json
import logging
from typing import ClassVar, List, Optional, Type

from ..errors import DuplicateItemError
from ..models import Note, Record, TaskTimer, Todo
from ..storage import KeyValueStore
from .base import BaseRepository, NoteRepository, T, TimerRepository, TodoRepository

logger = logging.getLogger(__name__)


class LocalRepository(BaseRepository[T]):
    """
    Repository over the device key-value store.

    The whole collection is one JSON array stored under ``storage_key``.
    Every call re-reads that array, so separate repository instances over the
    same store always agree; writes hold the store's lock for the key while
    they read, modify and write back.
    """

    storage_key: ClassVar[str]
    model: ClassVar[Type[Record]]

    def __init__(self, store: KeyValueStore) -> None:
        super().__init__()
        self._store = store

    async def _initialize(self) -> None:
        # Surface an unreadable store now rather than on first use
        await self._store.get(self.storage_key)

    async def _load(self) -> List[T]:
        raw = await self._store.get(self.storage_key)
        if raw is None:
            return []
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Stored %s are not valid JSON, treating as empty: %s", self.storage_key, exc)
            return []
        if not isinstance(decoded, list):
            logger.warning("Stored %s is not a JSON array, treating as empty", self.storage_key)
            return []
        return [self.model.from_json(item) for item in decoded]  # type: ignore[misc]

    async def _save(self, items: List[T]) -> None:
        await self._store.set(self.storage_key, json.dumps([i.to_json() for i in items]))

    async def get_all(self) -> List[T]:
        self._ensure_initialized()
        return await self._load()

    async def get_by_id(self, item_id: str) -> Optional[T]:
        self._ensure_initialized()
        for item in await self._load():
            if item.id == item_id:
                return item
        return None

    async def add(self, item: T) -> T:
        self._ensure_initialized()
        async with self._store.lock(self.storage_key):
            items = await self._load()
            if any(existing.id == item.id for existing in items):
                raise DuplicateItemError(item.id)
            items.append(item)
            await self._save(items)
        return item

    async def update(self, item: T) -> bool:
        self._ensure_initialized()
        async with self._store.lock(self.storage_key):
            items = await self._load()
            for index, existing in enumerate(items):
                if existing.id == item.id:
                    items[index] = item
                    await self._save(items)
                    return True
        return False

    async def delete(self, item_id: str) -> bool:
        self._ensure_initialized()
        async with self._store.lock(self.storage_key):
            items = await self._load()
            remaining = [i for i in items if i.id != item_id]
            if len(remaining) == len(items):
                return False
            await self._save(remaining)
        return True


class LocalTodoRepository(LocalRepository[Todo], TodoRepository):
    storage_key = "todos"
    model = Todo


class LocalTimerRepository(LocalRepository[TaskTimer], TimerRepository):
    storage_key = "timers"
    model = TaskTimer


class LocalNoteRepository(LocalRepository[Note], NoteRepository):
    storage_key = "notes"
    model = Note
