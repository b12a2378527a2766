from __future__ import annotations

import logging
from typing import ClassVar, List, Optional, Type

from ..auth import AuthProvider
from ..errors import DocumentNotFoundError, DuplicateItemError, NotAuthenticatedError, StoreError
from ..models import Note, Record, TaskTimer, Todo
from ..storage import DocumentStore, WriteBatch, collection_path
from .base import BaseRepository, NoteRepository, T, TimerRepository, TodoRepository

logger = logging.getLogger(__name__)


class CloudRepository(BaseRepository[T]):
    """
    Repository over the per-user cloud document store.

    Items live in ``users/<uid>/<collection>``, one document per item keyed
    by its id, with the same JSON shape the local store uses. The collection
    path is resolved once by initialize(), which requires a signed-in,
    non-anonymous user.
    """

    collection: ClassVar[str]
    model: ClassVar[Type[Record]]

    def __init__(self, store: DocumentStore, auth: AuthProvider) -> None:
        super().__init__()
        self._store = store
        self._auth = auth
        self._path: Optional[str] = None

    @property
    def path(self) -> str:
        self._ensure_initialized()
        assert self._path is not None
        return self._path

    async def _initialize(self) -> None:
        user = self._auth.current_user
        if user is None or user.is_anonymous:
            raise NotAuthenticatedError(f"{type(self).__name__} requires a signed-in, non-anonymous user")
        self._path = collection_path("users", user.uid, self.collection)

    def _decode(self, doc: dict) -> T:
        return self.model.from_json(doc)  # type: ignore[return-value]

    async def get_all(self) -> List[T]:
        docs = await self._store.list_documents(self.path)
        return [self._decode(doc) for doc in docs.values()]

    async def get_by_id(self, item_id: str) -> Optional[T]:
        doc = await self._store.get_document(self.path, item_id)
        return None if doc is None else self._decode(doc)

    async def add(self, item: T) -> T:
        if await self._store.get_document(self.path, item.id) is not None:
            raise DuplicateItemError(item.id)
        await self._store.set_document(self.path, item.id, item.to_json())
        return item

    async def update(self, item: T) -> bool:
        try:
            await self._store.update_document(self.path, item.id, item.to_json())
        except DocumentNotFoundError:
            return False
        return True

    async def delete(self, item_id: str) -> bool:
        return await self._store.delete_document(self.path, item_id)

    async def _commit(self, batch: WriteBatch, description: str) -> int:
        """Commit a batch and return how many writes it carried, or 0 if it failed."""
        if not len(batch):
            return 0
        try:
            await batch.commit()
        except StoreError as exc:
            logger.warning("%s: batch %s failed: %s", type(self).__name__, description, exc)
            return 0
        return len(batch)


class CloudTodoRepository(CloudRepository[Todo], TodoRepository):
    """Cloud todos; bulk operations are submitted as one batch."""

    collection = "todos"
    model = Todo

    async def delete_completed(self) -> int:
        batch = self._store.batch()
        for todo in await self.get_completed():
            batch.delete(self.path, todo.id)
        return await self._commit(batch, "delete completed")

    async def mark_all_as_completed(self) -> int:
        batch = self._store.batch()
        for todo in await self.get_incomplete():
            todo.complete()
            batch.update(self.path, todo.id, todo.to_json())
        return await self._commit(batch, "complete all")

    async def mark_all_as_incomplete(self) -> int:
        batch = self._store.batch()
        for todo in await self.get_completed():
            todo.uncomplete()
            batch.update(self.path, todo.id, todo.to_json())
        return await self._commit(batch, "reopen all")


class CloudTimerRepository(CloudRepository[TaskTimer], TimerRepository):
    """Cloud timers; stopping all running timers is one batch."""

    collection = "timers"
    model = TaskTimer

    async def stop_all_running(self) -> int:
        batch = self._store.batch()
        for timer in await self.get_running():
            timer.stop()
            batch.update(self.path, timer.id, timer.to_json())
        return await self._commit(batch, "stop all running")


class CloudNoteRepository(CloudRepository[Note], NoteRepository):
    collection = "notes"
    model = Note
