from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .auth import InMemoryAuthProvider, User
from .db import SQLiteDocumentStore, SQLiteKeyValueStore
from .repositories.factory import RepositoryFactory
from .services import CachedService, NoteService, TimerService, TodoService
from .settings import Settings, get_settings
from .storage import DocumentStore, InMemoryDocumentStore, InMemoryKeyValueStore, KeyValueStore
from .sync import SyncReport, SyncService

logger = logging.getLogger(__name__)


def _build_key_value_store(settings: Settings) -> KeyValueStore:
    if settings.local_store_backend == "sqlite":
        return SQLiteKeyValueStore(settings.local_store_path)
    return InMemoryKeyValueStore()


def _build_document_store(settings: Settings) -> DocumentStore:
    if settings.cloud_store_backend == "sqlite":
        return SQLiteDocumentStore(settings.cloud_store_path)
    return InMemoryDocumentStore()


# PUBLIC_INTERFACE
class AppContext:
    """
    Owns the stores, the repository factory, the three services and the
    sync service, and reacts to authentication changes.

    Behavior:
    - start() initializes the services and subscribes to auth changes.
    - When the user becomes fully authenticated, local data is merged into
      the cloud first and then every service switches to the cloud
      repositories. Any other change (anonymous sign-in, sign-out) only
      switches the services.
    - Auth changes are handled one at a time, in the order they happened.
    - sign_out() copies cloud data to the local store while the user is
      still signed in, then signs out.
    - Errors while handling an auth change are logged; the services keep
      their previous repository in that case.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        auth: Optional[InMemoryAuthProvider] = None,
        key_value_store: Optional[KeyValueStore] = None,
        document_store: Optional[DocumentStore] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.auth = auth or InMemoryAuthProvider()
        self.key_value_store = key_value_store or _build_key_value_store(self.settings)
        self.document_store = document_store or _build_document_store(self.settings)

        self.factory = RepositoryFactory(self.auth, self.key_value_store, self.document_store)
        self.todos = TodoService(self.factory)
        self.timers = TimerService(self.factory)
        self.notes = NoteService(self.factory, self.settings.note_save_debounce_seconds)
        self.sync = SyncService(self.factory, self.auth, self.settings)

        self._transition: Optional["asyncio.Task[Optional[SyncReport]]"] = None
        self._started = False

    @property
    def services(self) -> List[CachedService]:
        return [self.todos, self.timers, self.notes]

    @property
    def mode(self) -> str:
        """'cloud' when services are backed by the signed-in user's cloud data, else 'local'."""
        return "cloud" if self.factory.uses_cloud else "local"

    @property
    def current_user(self) -> Optional[User]:
        return self.auth.current_user

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.auth.add_listener(self._on_auth_state_changed)
        await asyncio.gather(*(service.initialize() for service in self.services))
        logger.info("Started in %s mode", self.mode)

    def _on_auth_state_changed(self, user: Optional[User]) -> None:
        previous = self._transition
        self._transition = asyncio.get_running_loop().create_task(self._handle_transition(user, previous))

    async def _handle_transition(
        self,
        user: Optional[User],
        previous: Optional["asyncio.Task[Optional[SyncReport]]"],
    ) -> Optional[SyncReport]:
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)

        report: Optional[SyncReport] = None
        try:
            if user is not None and not user.is_anonymous:
                # Edits still waiting in the note debounce belong to the local store
                await self.notes.flush_pending_saves()
                report = await self.sync.synchronize_to_cloud()
            await self.refresh_services()
        except Exception:
            logger.exception("Error handling auth change to %s", user.uid if user else None)
        return report

    async def refresh_services(self) -> None:
        """Re-resolve every service's repository and reload its cache."""
        for service in self.services:
            try:
                await service.refresh_repository()
            except Exception:
                logger.exception("Error refreshing %s", type(service).__name__)

    async def wait_for_transition(self) -> Optional[SyncReport]:
        """Wait for the latest auth change to be handled; return its sync report, if any."""
        if self._transition is None:
            return None
        return await self._transition

    async def sign_in(self, email: str, password: str) -> Optional[SyncReport]:
        await self.auth.sign_in_with_email_and_password(email, password)
        return await self.wait_for_transition()

    async def register(self, email: str, password: str) -> Optional[SyncReport]:
        """Create an account; an anonymous session is upgraded in place and keeps its uid."""
        if self.auth.is_anonymous:
            await self.auth.link_anonymous_account(email, password)
        else:
            await self.auth.register_with_email_and_password(email, password)
        return await self.wait_for_transition()

    async def sign_in_anonymously(self) -> None:
        await self.auth.sign_in_anonymously()
        await self.wait_for_transition()

    async def sign_out(self) -> Optional[SyncReport]:
        report: Optional[SyncReport] = None
        if self.auth.is_fully_authenticated:
            await self.notes.flush_pending_saves()
            report = await self.sync.synchronize_to_local()
        await self.auth.sign_out()
        await self.wait_for_transition()
        return report

    async def close(self) -> None:
        await self.wait_for_transition()
        await self.notes.close()
        self.auth.remove_listener(self._on_auth_state_changed)
        await self.key_value_store.close()
        await self.document_store.close()
        self._started = False
