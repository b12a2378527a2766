from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..debounce import Debouncer
from ..models import Note
from ..repositories.base import NoteRepository
from ..repositories.factory import RepositoryFactory
from .base import CachedService

logger = logging.getLogger(__name__)

DEFAULT_NOTE_TITLE = "Untitled Note"


# PUBLIC_INTERFACE
class NoteService(CachedService[Note, NoteRepository]):
    """
    Notes cache with debounced autosave.

    Edits made through update_note() show up in the cache immediately and
    are written to the repository once the note has not been edited for
    ``save_delay`` seconds. Until then the cache holds the edit on top of
    what the repository returns. A save that fails drops the edit and
    reloads the cache from the repository.
    """

    def __init__(self, factory: RepositoryFactory, save_delay: float = 2.0) -> None:
        super().__init__(factory)
        self._debouncer = Debouncer(save_delay)
        self._unsaved: Dict[str, Note] = {}

    async def _create_repository(self) -> NoteRepository:
        return await self._factory.create_note_repository()

    def _sorted(self, items: List[Note]) -> List[Note]:
        # Most recently updated first
        return sorted(items, key=lambda n: n.updated_at, reverse=True)

    def _snapshot(self, items: List[Note]) -> List[Note]:
        merged = {note.id: note for note in items}
        for note_id, edited in self._unsaved.items():
            if note_id in merged:
                merged[note_id] = edited
        return self._sorted(list(merged.values()))

    @property
    def notes(self) -> List[Note]:
        return self.items

    @property
    def unsaved_note_ids(self) -> List[str]:
        return list(self._unsaved)

    def get_note_by_id(self, note_id: str) -> Optional[Note]:
        return self.get_by_id(note_id)

    async def add_note(self, title: str, content: str = "") -> Note:
        """Create, persist and return a new note; a blank title becomes "Untitled Note"."""
        note = Note(title=title.strip() or DEFAULT_NOTE_TITLE, content=content)
        await self.repository.add(note)
        await self._reload()
        return note.model_copy(deep=True)

    async def update_note(self, note: Note) -> bool:
        """
        Apply an edit to the cache now and schedule it to be saved.

        Returns False if the note is not in the cache.
        """
        if self._find(note.id) is None:
            return False
        edited = note.model_copy(deep=True)
        edited.touch()
        self._unsaved[edited.id] = edited
        self._items = self._sorted([edited if n.id == edited.id else n for n in self._items])
        self.notify_listeners()
        self._debouncer.call(edited.id, lambda: self._save(edited.id))
        return True

    async def _save(self, note_id: str) -> None:
        note = self._unsaved.get(note_id)
        if note is None:
            return
        try:
            saved = await self.repository.update(note)
        except Exception:
            logger.exception("Error updating note %s after debounce", note_id)
            saved = False
        else:
            if not saved:
                logger.warning("Note %s no longer exists; dropping unsaved edit", note_id)
        # A newer edit may have arrived while saving; keep that one pending
        if self._unsaved.get(note_id) is note:
            del self._unsaved[note_id]
        if not saved:
            await self._reload()

    async def delete_note(self, note_id: str) -> bool:
        self._debouncer.cancel(note_id)
        try:
            ok = await self.repository.delete(note_id)
        except Exception:
            if note_id in self._unsaved:
                self._debouncer.call(note_id, lambda: self._save(note_id))
            raise
        self._unsaved.pop(note_id, None)
        if ok:
            await self._reload()
        return ok

    async def clear_all_notes(self) -> int:
        self._debouncer.cancel_all()
        self._unsaved.clear()
        return await self._clear_all()

    async def flush_pending_saves(self) -> None:
        """Write every edit still waiting for its debounce delay."""
        await self._debouncer.flush()

    async def refresh_repository(self) -> None:
        # Unsaved edits belong to the repository they were made against
        await self.flush_pending_saves()
        await super().refresh_repository()

    async def close(self) -> None:
        await self.flush_pending_saves()
