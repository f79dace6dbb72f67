"""Infrastructure models package exports."""
from .base import Base, metadata
from .document import CounterModel, DocumentModel

__all__ = [
    "Base",
    "metadata",
    "DocumentModel",
    "CounterModel",
]
