"""In-memory implementation of DocumentStore.

Single-process only. Useful for local dev and tests. Every operation yields
to the event loop first so concurrent callers interleave the way they would
against a real store; conditional writes and counters hold the lock across
their read and write.
"""
from __future__ import annotations

import asyncio
import copy
from typing import Any, Iterable, Mapping, Optional

from application.ports.document_store import Document, DocumentStore
from domain.common.exceptions import DocumentNotFoundException


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    def _bucket(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:  # type: ignore[override]
        await asyncio.sleep(0)
        doc = self._bucket(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, doc: Document) -> None:  # type: ignore[override]
        await asyncio.sleep(0)
        async with self._lock:
            self._bucket(collection)[doc_id] = copy.deepcopy(dict(doc))

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> Document:  # type: ignore[override]
        await asyncio.sleep(0)
        async with self._lock:
            bucket = self._bucket(collection)
            if doc_id not in bucket:
                raise DocumentNotFoundException(collection, doc_id)
            bucket[doc_id].update(copy.deepcopy(dict(patch)))
            return copy.deepcopy(bucket[doc_id])

    async def query(  # type: ignore[override]
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        await asyncio.sleep(0)
        filters = filters or {}
        rows = [
            doc for doc in self._bucket(collection).values()
            if all(doc.get(k) == v for k, v in filters.items())
        ]
        if order_by:
            # None sorts first ascending, last descending
            rows.sort(key=lambda d: (d.get(order_by) is not None, d.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def compare_and_set(  # type: ignore[override]
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Iterable[Any],
        patch: Mapping[str, Any],
    ) -> bool:
        await asyncio.sleep(0)
        allowed = list(expected)
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None or doc.get(field) not in allowed:
                return False
            doc.update(copy.deepcopy(dict(patch)))
            return True

    async def increment(self, collection: str, doc_id: str, field: str = "value") -> int:  # type: ignore[override]
        await asyncio.sleep(0)
        async with self._lock:
            doc = self._bucket(collection).setdefault(doc_id, {field: 0})
            doc[field] = int(doc.get(field) or 0) + 1
            return doc[field]

    async def aclose(self) -> None:  # type: ignore[override]
        async with self._lock:
            self._collections.clear()
