"""
Document store tables - SQLAlchemy ORM models.

These back the generic DocumentStore port; payment, receipt and audit
entities are stored as JSON documents keyed by (collection, doc_id).
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String

from .base import Base


class DocumentModel(Base):
    __tablename__ = "documents"

    collection = Column(String(100), primary_key=True, comment="collection name")
    doc_id = Column(String(200), primary_key=True, comment="document id within collection")
    data = Column(JSON, nullable=False, comment="document body")
    # Optimistic concurrency token, bumped on every write
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_documents_collection", "collection"),
    )

    def __repr__(self):
        return f"<DocumentModel(collection='{self.collection}', doc_id='{self.doc_id}', version={self.version})>"


class CounterModel(Base):
    __tablename__ = "counters"

    collection = Column(String(100), primary_key=True)
    doc_id = Column(String(200), primary_key=True)
    field = Column(String(100), primary_key=True, default="value")
    value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<CounterModel({self.collection}/{self.doc_id}.{self.field}={self.value})>"
