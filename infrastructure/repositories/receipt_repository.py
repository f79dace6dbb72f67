"""
Receipt repository backed by the DocumentStore port.
"""
from typing import Optional

from application.ports.document_store import DocumentStore
from domain.receipt.entity import Receipt
from domain.receipt.repository import ReceiptRepository

from . import collection_names as collections


class DocumentReceiptRepository(ReceiptRepository):

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add(self, receipt: Receipt) -> Receipt:
        await self.store.set(collections.RECEIPTS, receipt.receipt_id, receipt.to_document())
        return receipt

    async def get(self, receipt_id: str) -> Optional[Receipt]:
        doc = await self.store.get(collections.RECEIPTS, receipt_id)
        return Receipt.from_document(doc) if doc else None

    async def get_by_payment_id(self, payment_id: str) -> Optional[Receipt]:
        docs = await self.store.query(collections.RECEIPTS, {"payment_id": payment_id}, limit=1)
        return Receipt.from_document(docs[0]) if docs else None

    async def next_sequence(self, counter_key: str) -> int:
        return await self.store.increment(collections.RECEIPT_COUNTERS, counter_key)
