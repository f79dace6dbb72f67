"""
Document store port: the persistence façade consumed by repositories.

Single-document reads and writes are strongly consistent; `query` may be
eventually consistent. `compare_and_set` and `increment` are the only
operations safe to use for read-then-act decisions under concurrency.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol, runtime_checkable


Document = dict[str, Any]


@runtime_checkable
class DocumentStore(Protocol):

    async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    async def set(self, collection: str, doc_id: str, doc: Document) -> None: ...

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> Document:
        """Merge `patch` into an existing document; raises DocumentNotFoundException."""
        ...

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]: ...

    async def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Iterable[Any],
        patch: Mapping[str, Any],
    ) -> bool:
        """Apply `patch` only if doc[field] is one of `expected`; atomic."""
        ...

    async def increment(self, collection: str, doc_id: str, field: str = "value") -> int:
        """Atomically add one to a counter document (created at 1) and return it."""
        ...

    async def aclose(self) -> None: ...
