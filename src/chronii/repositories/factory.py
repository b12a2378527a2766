from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Type, cast

from ..auth import AuthProvider
from ..storage import DocumentStore, KeyValueStore
from .base import BaseRepository, NoteRepository, TimerRepository, TodoRepository
from .cloud import CloudNoteRepository, CloudRepository, CloudTimerRepository, CloudTodoRepository
from .local import LocalNoteRepository, LocalRepository, LocalTimerRepository, LocalTodoRepository

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class EntityKind(str, Enum):
    """The synchronized collections, named after their storage key."""

    TODOS = "todos"
    TIMERS = "timers"
    NOTES = "notes"


_LOCAL: Dict[EntityKind, Type[LocalRepository]] = {
    EntityKind.TODOS: LocalTodoRepository,
    EntityKind.TIMERS: LocalTimerRepository,
    EntityKind.NOTES: LocalNoteRepository,
}

_CLOUD: Dict[EntityKind, Type[CloudRepository]] = {
    EntityKind.TODOS: CloudTodoRepository,
    EntityKind.TIMERS: CloudTimerRepository,
    EntityKind.NOTES: CloudNoteRepository,
}


# PUBLIC_INTERFACE
class RepositoryFactory:
    """
    Builds repositories for the current authentication state.

    - No user or an anonymous user: local repository over the key-value store.
    - A fully authenticated user: cloud repository over the document store.

    create_* methods return initialized repositories. A cloud repository
    that fails to initialize (for example because the user signed out in
    the meantime) raises; there is no silent fallback to local storage.
    """

    def __init__(self, auth: AuthProvider, key_value_store: KeyValueStore, document_store: DocumentStore) -> None:
        self._auth = auth
        self._key_value_store = key_value_store
        self._document_store = document_store

    @property
    def uses_cloud(self) -> bool:
        return self._auth.is_fully_authenticated

    def local_repository(self, kind: EntityKind) -> LocalRepository:
        """Uninitialized local repository for ``kind``."""
        return _LOCAL[EntityKind(kind)](self._key_value_store)

    def cloud_repository(self, kind: EntityKind) -> CloudRepository:
        """Uninitialized cloud repository for ``kind``."""
        return _CLOUD[EntityKind(kind)](self._document_store, self._auth)

    async def create_repository(self, kind: EntityKind) -> BaseRepository:
        """Return an initialized repository of the backend matching the auth state."""
        repository: BaseRepository
        if self.uses_cloud:
            repository = self.cloud_repository(kind)
        else:
            repository = self.local_repository(kind)
        await repository.initialize()
        logger.debug("Created %s for %s", type(repository).__name__, EntityKind(kind).value)
        return repository

    async def create_todo_repository(self) -> TodoRepository:
        return cast(TodoRepository, await self.create_repository(EntityKind.TODOS))

    async def create_timer_repository(self) -> TimerRepository:
        return cast(TimerRepository, await self.create_repository(EntityKind.TIMERS))

    async def create_note_repository(self) -> NoteRepository:
        return cast(NoteRepository, await self.create_repository(EntityKind.NOTES))
