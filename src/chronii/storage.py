from __future__ import annotations

import asyncio
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from .errors import DocumentNotFoundError

Document = Dict[str, Any]


def collection_path(*segments: str) -> str:
    """Join path segments into a document collection path, e.g. users/<uid>/todos."""
    return "/".join(s.strip("/") for s in segments if s)


# PUBLIC_INTERFACE
class KeyValueStore(ABC):
    """
    String-keyed, string-valued persistent storage on the device.

    Implementations raise StoreError for I/O failures.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        """Return the lock serializing read-modify-write cycles on ``key``."""
        existing = self._locks.get(key)
        if existing is None:
            existing = self._locks[key] = asyncio.Lock()
        return existing

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Remove key. Return True if it existed."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe in-memory key-value store suitable for testing and default runtime."""

    def __init__(self) -> None:
        super().__init__()
        self._guard = RLock()
        self._values: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        with self._guard:
            return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        with self._guard:
            self._values[key] = value

    async def remove(self, key: str) -> bool:
        with self._guard:
            return self._values.pop(key, None) is not None


@dataclass(frozen=True)
class BatchWrite:
    """One queued write of a WriteBatch."""

    op: str  # one of: set, update, delete
    path: str
    doc_id: str
    data: Optional[Document] = None


class WriteBatch:
    """
    Groups document writes into one submission.

    Writes are queued with set/update/delete and applied by commit(); the
    store decides how atomic the commit is.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._writes: List[BatchWrite] = []
        self._committed = False

    def set(self, path: str, doc_id: str, data: Document) -> "WriteBatch":
        self._writes.append(BatchWrite("set", path, doc_id, copy.deepcopy(data)))
        return self

    def update(self, path: str, doc_id: str, data: Document) -> "WriteBatch":
        self._writes.append(BatchWrite("update", path, doc_id, copy.deepcopy(data)))
        return self

    def delete(self, path: str, doc_id: str) -> "WriteBatch":
        self._writes.append(BatchWrite("delete", path, doc_id))
        return self

    @property
    def writes(self) -> Tuple[BatchWrite, ...]:
        return tuple(self._writes)

    def __len__(self) -> int:
        return len(self._writes)

    async def commit(self) -> None:
        """Apply all queued writes. A batch can be committed once."""
        if self._committed:
            raise RuntimeError("WriteBatch already committed")
        self._committed = True
        if self._writes:
            await self._store.commit_batch(self.writes)


# PUBLIC_INTERFACE
class DocumentStore(ABC):
    """
    Networked document-collection store (the cloud side).

    A collection is addressed by a slash-separated path and holds documents
    keyed by id. Implementations raise StoreError for transport failures and
    DocumentNotFoundError when updating a missing document.
    """

    @abstractmethod
    async def list_documents(self, path: str) -> Dict[str, Document]:
        """Return every document in a collection keyed by document id."""

    @abstractmethod
    async def get_document(self, path: str, doc_id: str) -> Optional[Document]:
        """Return one document, or None if it does not exist."""

    @abstractmethod
    async def set_document(self, path: str, doc_id: str, data: Document) -> None:
        """Create or replace a document."""

    @abstractmethod
    async def update_document(self, path: str, doc_id: str, data: Document) -> None:
        """Merge fields into an existing document; raise DocumentNotFoundError if absent."""

    @abstractmethod
    async def delete_document(self, path: str, doc_id: str) -> bool:
        """Delete a document. Return True if it existed."""

    @abstractmethod
    async def commit_batch(self, writes: Tuple[BatchWrite, ...]) -> None:
        """Apply a group of writes, all-or-nothing where the backend allows it."""

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory reference implementation of the cloud document store.

    Documents are deep-copied on the way in and out so callers never share
    state with the store. Batches are validated before any write is applied,
    which makes them atomic.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Document]] = {}

    def _collection(self, path: str) -> Dict[str, Document]:
        return self._collections.setdefault(path, {})

    async def list_documents(self, path: str) -> Dict[str, Document]:
        with self._lock:
            return copy.deepcopy(self._collections.get(path, {}))

    async def get_document(self, path: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._collections.get(path, {}).get(doc_id)
            return None if doc is None else copy.deepcopy(doc)

    async def set_document(self, path: str, doc_id: str, data: Document) -> None:
        with self._lock:
            self._collection(path)[doc_id] = copy.deepcopy(data)

    async def update_document(self, path: str, doc_id: str, data: Document) -> None:
        with self._lock:
            existing = self._collections.get(path, {}).get(doc_id)
            if existing is None:
                raise DocumentNotFoundError(path, doc_id)
            existing.update(copy.deepcopy(data))

    async def delete_document(self, path: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections.get(path, {}).pop(doc_id, None) is not None

    async def commit_batch(self, writes: Tuple[BatchWrite, ...]) -> None:
        with self._lock:
            # Validate every update target first so a failing batch changes nothing
            pending_ids = {(w.path, w.doc_id) for w in writes if w.op == "set"}
            for w in writes:
                if w.op == "update" and w.doc_id not in self._collections.get(w.path, {}):
                    if (w.path, w.doc_id) not in pending_ids:
                        raise DocumentNotFoundError(w.path, w.doc_id)
            for w in writes:
                if w.op == "set":
                    self._collection(w.path)[w.doc_id] = copy.deepcopy(w.data or {})
                elif w.op == "update":
                    self._collection(w.path).setdefault(w.doc_id, {}).update(copy.deepcopy(w.data or {}))
                elif w.op == "delete":
                    self._collections.get(w.path, {}).pop(w.doc_id, None)
                else:
                    raise ValueError(f"Unknown batch operation {w.op!r}")
