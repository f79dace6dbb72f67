"""
SQLAlchemy implementation of DocumentStore.

Documents live in a single `documents` table as JSON. Conditional writes use
an optimistic version column (UPDATE ... WHERE version = :seen) and retry on
conflict; counters use UPDATE ... RETURNING so allocation never goes through
a read-then-write in application code.
"""
from __future__ import annotations

import copy
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from application.ports.document_store import Document, DocumentStore
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, DocumentNotFoundException
from infrastructure.database import build_engine, create_tables, get_engine, get_session_factory
from infrastructure.models.document import CounterModel, DocumentModel
from shared.codes import BusinessCode


logger = get_logger(__name__)

_MISSING = object()


class ConcurrentUpdateConflict(BusinessException):
    def __init__(self, collection: str, doc_id: str, attempts: int):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message="Document was modified concurrently, please retry",
            error_type="ConcurrentUpdateConflict",
            details={"collection": collection, "id": doc_id, "attempts": attempts},
        )


class SQLAlchemyDocumentStore(DocumentStore):
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        *,
        engine: Optional[AsyncEngine] = None,
        max_attempts: int = 5,
    ) -> None:
        self._engine = engine
        if session_factory is None:
            session_factory = (
                async_sessionmaker(bind=engine, expire_on_commit=False) if engine is not None
                else get_session_factory()
            )
        self._session_factory = session_factory
        self._max_attempts = max_attempts

    @classmethod
    def from_url(cls, database_url: str, **kwargs: Any) -> "SQLAlchemyDocumentStore":
        """Build a store owning its own engine (disposed by aclose)."""
        return cls(engine=build_engine(database_url), **kwargs)

    async def create_schema(self) -> None:
        await create_tables(self._engine or get_engine())

    # Helpers
    @staticmethod
    def _json_field(key: str, value: Any):
        element = DocumentModel.data[key]
        if isinstance(value, bool):
            return element.as_boolean()
        if isinstance(value, int):
            return element.as_integer()
        if isinstance(value, float):
            return element.as_float()
        return element.as_string()

    async def _write_if(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[Document], Optional[Document]],
    ) -> Any:
        """Optimistically rewrite one document.

        `mutate` returns the new body, or None to leave the document alone.
        Returns the written body, None when mutate declined, _MISSING when the
        document does not exist.
        """
        table = DocumentModel.__table__
        for attempt in range(1, self._max_attempts + 1):
            async with self._session_factory() as session, session.begin():
                row = (
                    await session.execute(
                        select(DocumentModel.data, DocumentModel.version).where(
                            DocumentModel.collection == collection,
                            DocumentModel.doc_id == doc_id,
                        )
                    )
                ).one_or_none()
                if row is None:
                    return _MISSING
                new_doc = mutate(copy.deepcopy(row.data))
                if new_doc is None:
                    return None
                result = await session.execute(
                    update(table)
                    .where(
                        table.c.collection == collection,
                        table.c.doc_id == doc_id,
                        table.c.version == row.version,
                    )
                    .values(data=new_doc, version=row.version + 1)
                )
                if result.rowcount == 1:
                    return new_doc
            logger.info("document_write_conflict", collection=collection, doc_id=doc_id, attempt=attempt)
        raise ConcurrentUpdateConflict(collection, doc_id, self._max_attempts)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:  # type: ignore[override]
        async with self._session_factory() as session:
            row = await session.get(DocumentModel, (collection, doc_id))
            return copy.deepcopy(row.data) if row else None

    async def set(self, collection: str, doc_id: str, doc: Document) -> None:  # type: ignore[override]
        body = copy.deepcopy(dict(doc))
        async with self._session_factory() as session, session.begin():
            row = await session.get(DocumentModel, (collection, doc_id))
            if row is None:
                session.add(DocumentModel(collection=collection, doc_id=doc_id, data=body, version=1))
            else:
                row.data = body
                row.version = row.version + 1

    async def update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> Document:  # type: ignore[override]
        changes = copy.deepcopy(dict(patch))
        result = await self._write_if(collection, doc_id, lambda data: {**data, **changes})
        if result is _MISSING:
            raise DocumentNotFoundException(collection, doc_id)
        return result

    async def query(  # type: ignore[override]
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        stmt = select(DocumentModel.data).where(DocumentModel.collection == collection)
        for key, value in (filters or {}).items():
            stmt = stmt.where(self._json_field(key, value) == value)
        if order_by:
            column = DocumentModel.data[order_by].as_string()
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [copy.deepcopy(r) for r in rows]

    async def compare_and_set(  # type: ignore[override]
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Iterable[Any],
        patch: Mapping[str, Any],
    ) -> bool:
        allowed = list(expected)
        changes = copy.deepcopy(dict(patch))

        def _mutate(data: Document) -> Optional[Document]:
            if data.get(field) not in allowed:
                return None
            return {**data, **changes}

        result = await self._write_if(collection, doc_id, _mutate)
        return result is not None and result is not _MISSING

    async def increment(self, collection: str, doc_id: str, field: str = "value") -> int:  # type: ignore[override]
        table = CounterModel.__table__
        for _ in range(self._max_attempts):
            try:
                async with self._session_factory() as session, session.begin():
                    result = await session.execute(
                        update(table)
                        .where(
                            table.c.collection == collection,
                            table.c.doc_id == doc_id,
                            table.c.field == field,
                        )
                        .values(value=table.c.value + 1)
                        .returning(table.c.value)
                    )
                    value = result.scalar_one_or_none()
                    if value is None:
                        session.add(CounterModel(collection=collection, doc_id=doc_id, field=field, value=1))
                        await session.flush()
                        value = 1
                    return int(value)
            except IntegrityError:
                # Another caller created the counter row first; bump theirs
                logger.info("counter_create_race", collection=collection, doc_id=doc_id)
        raise ConcurrentUpdateConflict(collection, doc_id, self._max_attempts)

    async def aclose(self) -> None:  # type: ignore[override]
        if self._engine is not None:
            await self._engine.dispose()
