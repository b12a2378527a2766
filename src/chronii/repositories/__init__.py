"""
Repository layer: one CRUD contract per entity type, implemented against the
local key-value store and against the per-user cloud document store.
"""

from .base import BaseRepository, NoteRepository, TimerRepository, TodoRepository
from .cloud import CloudNoteRepository, CloudRepository, CloudTimerRepository, CloudTodoRepository
from .factory import EntityKind, RepositoryFactory
from .local import LocalNoteRepository, LocalRepository, LocalTimerRepository, LocalTodoRepository

__all__ = [
    "BaseRepository",
    "CloudNoteRepository",
    "CloudRepository",
    "CloudTimerRepository",
    "CloudTodoRepository",
    "EntityKind",
    "LocalNoteRepository",
    "LocalRepository",
    "LocalTimerRepository",
    "LocalTodoRepository",
    "NoteRepository",
    "RepositoryFactory",
    "TimerRepository",
    "TodoRepository",
]
