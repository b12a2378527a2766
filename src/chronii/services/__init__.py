"""
Cached, observable state for the three collections. Each service reads and
writes through whichever repository the factory currently hands out.
"""

from .base import CachedService, ChangeNotifier
from .notes import NoteService
from .timers import TimerService
from .todos import TodoService

__all__ = ["CachedService", "ChangeNotifier", "NoteService", "TimerService", "TodoService"]
