from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Generator, Optional, Tuple

from .errors import DocumentNotFoundError, StoreError
from .storage import BatchWrite, Document, DocumentStore, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _KvCols:
    table: str = "kv"
    key: str = "key"
    value: str = "value"


@dataclass(frozen=True)
class _DocCols:
    table: str = "documents"
    collection: str = "collection"
    doc_id: str = "doc_id"
    data: str = "data"


_KV = _KvCols()
_DOC = _DocCols()


class _SQLiteBase:
    """Connection handling shared by the SQLite-backed stores."""

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()
        logger.debug("%s ready at %s", type(self).__name__, db_path)

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        raise NotImplementedError

    @staticmethod
    async def _run(func, *args):
        # sqlite3 blocks; keep it off the event loop
        return await asyncio.to_thread(func, *args)


class SQLiteKeyValueStore(_SQLiteBase, KeyValueStore):
    """
    Local key-value store persisted in a single SQLite table.
    """

    def __init__(self, db_path: str) -> None:
        KeyValueStore.__init__(self)
        _SQLiteBase.__init__(self, db_path)

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_KV.table} (
                    {_KV.key} TEXT PRIMARY KEY,
                    {_KV.value} TEXT NOT NULL
                )
                """
            )

    def _get(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_KV.value} FROM {_KV.table} WHERE {_KV.key} = ?", (key,)).fetchone()
            return str(row[_KV.value]) if row else None

    def _set(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_KV.table} ({_KV.key}, {_KV.value}) VALUES (?, ?)
                ON CONFLICT({_KV.key}) DO UPDATE SET {_KV.value} = excluded.{_KV.value}
                """,
                (key, value),
            )

    def _remove(self, key: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_KV.table} WHERE {_KV.key} = ?", (key,))
            return cur.rowcount > 0

    async def get(self, key: str) -> Optional[str]:
        return await self._run(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await self._run(self._set, key, value)

    async def remove(self, key: str) -> bool:
        return await self._run(self._remove, key)


class SQLiteDocumentStore(_SQLiteBase, DocumentStore):
    """
    Document store persisted in SQLite, one row per document.

    Batches are committed in a single transaction.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_DOC.table} (
                    {_DOC.collection} TEXT NOT NULL,
                    {_DOC.doc_id} TEXT NOT NULL,
                    {_DOC.data} TEXT NOT NULL,
                    PRIMARY KEY ({_DOC.collection}, {_DOC.doc_id})
                )
                """
            )

    @staticmethod
    def _decode(raw: str) -> Document:
        return json.loads(raw)

    def _select(self, conn: sqlite3.Connection, path: str, doc_id: str) -> Optional[Document]:
        row = conn.execute(
            f"SELECT {_DOC.data} FROM {_DOC.table} WHERE {_DOC.collection} = ? AND {_DOC.doc_id} = ?",
            (path, doc_id),
        ).fetchone()
        return self._decode(row[_DOC.data]) if row else None

    def _upsert(self, conn: sqlite3.Connection, path: str, doc_id: str, data: Document) -> None:
        conn.execute(
            f"""
            INSERT INTO {_DOC.table} ({_DOC.collection}, {_DOC.doc_id}, {_DOC.data}) VALUES (?, ?, ?)
            ON CONFLICT({_DOC.collection}, {_DOC.doc_id}) DO UPDATE SET {_DOC.data} = excluded.{_DOC.data}
            """,
            (path, doc_id, json.dumps(data)),
        )

    def _merge(self, conn: sqlite3.Connection, path: str, doc_id: str, data: Document) -> None:
        current = self._select(conn, path, doc_id)
        if current is None:
            raise DocumentNotFoundError(path, doc_id)
        current.update(data)
        self._upsert(conn, path, doc_id, current)

    def _delete(self, conn: sqlite3.Connection, path: str, doc_id: str) -> bool:
        cur = conn.execute(
            f"DELETE FROM {_DOC.table} WHERE {_DOC.collection} = ? AND {_DOC.doc_id} = ?",
            (path, doc_id),
        )
        return cur.rowcount > 0

    def _list(self, path: str) -> Dict[str, Document]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_DOC.doc_id}, {_DOC.data} FROM {_DOC.table} WHERE {_DOC.collection} = ?",
                (path,),
            ).fetchall()
            return {str(r[_DOC.doc_id]): self._decode(r[_DOC.data]) for r in rows}

    def _get(self, path: str, doc_id: str) -> Optional[Document]:
        with self._conn() as conn:
            return self._select(conn, path, doc_id)

    def _set(self, path: str, doc_id: str, data: Document) -> None:
        with self._conn() as conn:
            self._upsert(conn, path, doc_id, data)

    def _update(self, path: str, doc_id: str, data: Document) -> None:
        with self._conn() as conn:
            self._merge(conn, path, doc_id, data)

    def _remove(self, path: str, doc_id: str) -> bool:
        with self._conn() as conn:
            return self._delete(conn, path, doc_id)

    def _commit(self, writes: Tuple[BatchWrite, ...]) -> None:
        # Any exception inside the context skips the commit, discarding the whole batch
        with self._conn() as conn:
            for w in writes:
                if w.op == "set":
                    self._upsert(conn, w.path, w.doc_id, w.data or {})
                elif w.op == "update":
                    self._merge(conn, w.path, w.doc_id, w.data or {})
                elif w.op == "delete":
                    self._delete(conn, w.path, w.doc_id)
                else:
                    raise ValueError(f"Unknown batch operation {w.op!r}")

    async def list_documents(self, path: str) -> Dict[str, Document]:
        return await self._run(self._list, path)

    async def get_document(self, path: str, doc_id: str) -> Optional[Document]:
        return await self._run(self._get, path, doc_id)

    async def set_document(self, path: str, doc_id: str, data: Document) -> None:
        await self._run(self._set, path, doc_id, data)

    async def update_document(self, path: str, doc_id: str, data: Document) -> None:
        await self._run(self._update, path, doc_id, data)

    async def delete_document(self, path: str, doc_id: str) -> bool:
        return await self._run(self._remove, path, doc_id)

    async def commit_batch(self, writes: Tuple[BatchWrite, ...]) -> None:
        await self._run(self._commit, writes)
