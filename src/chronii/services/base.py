from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Generic, List, Optional, TypeVar

from ..errors import ServiceNotInitializedError
from ..models import Record
from ..repositories.base import BaseRepository
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Record)
R = TypeVar("R", bound=BaseRepository)

Listener = Callable[[], None]


# PUBLIC_INTERFACE
class ChangeNotifier:
    """Explicit observer list; listeners are called with no arguments after each change."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Change listener %r failed", listener)


# PUBLIC_INTERFACE
class CachedService(ChangeNotifier, ABC, Generic[T, R]):
    """
    In-memory cache of one collection, backed by the repository the factory
    hands out for the current authentication state.

    Behavior:
    - initialize() loads the cache once; later calls are no-ops.
    - refresh_repository() resolves the repository again and reloads the
      cache; the new repository and its snapshot replace the old ones in
      a single step, so readers never see a mix of both.
    - Mutations call the repository first and reload the cache only once it
      succeeded; a failing call leaves the cache as it was.
    - Reads (items) are synchronous copies of the last snapshot.
    """

    def __init__(self, factory: RepositoryFactory) -> None:
        super().__init__()
        self._factory = factory
        self._repository: Optional[R] = None
        self._items: List[T] = []
        self._initialized = False

    @abstractmethod
    async def _create_repository(self) -> R:
        """Ask the factory for this service's repository."""

    def _sorted(self, items: List[T]) -> List[T]:
        """Hook to order a freshly loaded snapshot."""
        return list(items)

    def _snapshot(self, items: List[T]) -> List[T]:
        """Build the cache contents from what the repository returned."""
        return self._sorted(items)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def repository(self) -> R:
        if self._repository is None:
            raise ServiceNotInitializedError(f"{type(self).__name__} used before initialize()")
        return self._repository

    @property
    def items(self) -> List[T]:
        return [item.model_copy(deep=True) for item in self._items]

    def _find(self, item_id: str) -> Optional[T]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def get_by_id(self, item_id: str) -> Optional[T]:
        """Cached item with this id, or None. Never performs I/O."""
        item = self._find(item_id)
        return None if item is None else item.model_copy(deep=True)

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.refresh_repository()

    async def refresh_repository(self) -> None:
        repository = await self._create_repository()
        items = await repository.get_all()
        self._repository, self._items = repository, self._snapshot(items)
        self._initialized = True
        logger.debug("%s now backed by %s (%d items)", type(self).__name__, type(repository).__name__, len(items))
        self.notify_listeners()

    async def _reload(self) -> None:
        repository = self.repository
        items = await repository.get_all()
        if repository is self._repository:
            self._items = self._snapshot(items)
        self.notify_listeners()

    async def _clear_all(self) -> int:
        repository = self.repository
        removed = 0
        try:
            for item in list(self._items):
                if await repository.delete(item.id):
                    removed += 1
        finally:
            # Deletions already applied must show up even if a later one failed
            await self._reload()
        return removed
