"""
Receipt renderer port. Rendering must be pure: the same ReceiptDetails
always produce the same document.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.receipt.entity import ReceiptDetails


@runtime_checkable
class ReceiptRenderer(Protocol):
    media_type: str

    def render(self, details: ReceiptDetails) -> bytes: ...
