"""
Receipt DTOs.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from domain.receipt.entity import ReceiptDetails


class ReceiptResult(BaseModel):
    receipt_id: str
    receipt_number: str
    document: bytes
    media_type: str = "application/pdf"
    details: ReceiptDetails

    model_config = ConfigDict(arbitrary_types_allowed=True)
