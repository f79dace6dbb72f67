"""
Factory for document store backends.
"""
from __future__ import annotations

from typing import Optional

from application.ports.document_store import DocumentStore
from core.config import settings


def get_document_store(backend: Optional[str] = None) -> DocumentStore:
    name = (backend or settings.document_store.backend).lower()
    if name == "memory":
        from .memory import InMemoryDocumentStore
        return InMemoryDocumentStore()
    if name == "sqlalchemy":
        from .sqlalchemy_store import SQLAlchemyDocumentStore
        return SQLAlchemyDocumentStore()
    raise ValueError(f"Unsupported document store backend: {name}")
