"""
Shared fixtures: in-memory stores, an auth provider, a repository factory,
and a document store whose failures and latency can be dialed in per test.
"""
import asyncio
from typing import Dict, Optional, Set, Tuple

import pytest
import pytest_asyncio

from chronii.auth import InMemoryAuthProvider, User
from chronii.errors import StoreError
from chronii.repositories import RepositoryFactory
from chronii.storage import BatchWrite, Document, InMemoryDocumentStore, InMemoryKeyValueStore

EMAIL = "ada@example.com"
PASSWORD = "secret123"


class FlakyDocumentStore(InMemoryDocumentStore):
    """
    In-memory cloud store that can be told to fail or stall.

    - failing_collections: collection names (last path segment) whose every call raises StoreError
    - failing_ids: document ids whose writes raise StoreError
    - delay: seconds every call sleeps before running
    - write_delays: per document id sleep applied to writes
    """

    def __init__(self) -> None:
        super().__init__()
        self.failing_collections: Set[str] = set()
        self.failing_ids: Set[str] = set()
        self.delay = 0.0
        self.write_delays: Dict[str, float] = {}

    async def _check(self, path: str, doc_id: Optional[str] = None, write: bool = False) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if path.rsplit("/", 1)[-1] in self.failing_collections:
            raise StoreError(f"{path} unavailable")
        if write and doc_id is not None:
            if doc_id in self.write_delays:
                await asyncio.sleep(self.write_delays[doc_id])
            if doc_id in self.failing_ids:
                raise StoreError(f"write of {doc_id} rejected")

    async def list_documents(self, path: str) -> Dict[str, Document]:
        await self._check(path)
        return await super().list_documents(path)

    async def get_document(self, path: str, doc_id: str) -> Optional[Document]:
        await self._check(path)
        return await super().get_document(path, doc_id)

    async def set_document(self, path: str, doc_id: str, data: Document) -> None:
        await self._check(path, doc_id, write=True)
        await super().set_document(path, doc_id, data)

    async def update_document(self, path: str, doc_id: str, data: Document) -> None:
        await self._check(path, doc_id, write=True)
        await super().update_document(path, doc_id, data)

    async def commit_batch(self, writes: Tuple[BatchWrite, ...]) -> None:
        for w in writes:
            await self._check(w.path, w.doc_id, write=True)
        await super().commit_batch(writes)


@pytest.fixture
def auth() -> InMemoryAuthProvider:
    return InMemoryAuthProvider()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def doc_store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture
def factory(auth, kv_store, doc_store) -> RepositoryFactory:
    return RepositoryFactory(auth, kv_store, doc_store)


@pytest_asyncio.fixture
async def signed_in(auth) -> User:
    """A fully authenticated (email/password) user."""
    return await auth.register_with_email_and_password(EMAIL, PASSWORD)
