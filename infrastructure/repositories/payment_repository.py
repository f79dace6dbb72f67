"""
Payment repositories backed by the DocumentStore port.
"""
from datetime import datetime
from typing import Iterable, List, Optional

from application.ports.document_store import DocumentStore
from core.logging_config import get_logger
from domain.common.values import dt_to_doc
from domain.payment.entity import (
    AuditLogEntry,
    GatewayName,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
)
from domain.payment.repository import AuditLogRepository, OrderRepository, PaymentRepository

from . import collection_names as collections


logger = get_logger(__name__)


class DocumentOrderRepository(OrderRepository):

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add(self, order: Order) -> Order:
        await self.store.set(collections.ORDERS, order.order_id, order.to_document())
        return order

    async def get(self, order_id: str) -> Optional[Order]:
        doc = await self.store.get(collections.ORDERS, order_id)
        return Order.from_document(doc) if doc else None

    async def transition(
        self,
        order_id: str,
        expected: Iterable[OrderStatus],
        new_status: OrderStatus,
        *,
        now: datetime,
        claimed_at: Optional[datetime] = None,
    ) -> bool:
        expected_values = [OrderStatus(s).value for s in expected]
        applied = await self.store.compare_and_set(
            collections.ORDERS,
            order_id,
            "status",
            expected_values,
            {
                "status": new_status.value,
                "claimed_at": dt_to_doc(claimed_at),
                "updated_at": dt_to_doc(now),
            },
        )
        logger.info(
            "order_transition",
            order_id=order_id,
            expected=expected_values,
            new_status=new_status.value,
            applied=applied,
        )
        return applied

    async def list_by_status(self, status: OrderStatus) -> List[Order]:
        docs = await self.store.query(collections.ORDERS, {"status": status.value})
        return [Order.from_document(d) for d in docs]


class DocumentPaymentRepository(PaymentRepository):

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add(self, payment: Payment) -> Payment:
        await self.store.set(collections.PAYMENTS, payment.payment_id, payment.to_document())
        logger.info(
            "payment_created",
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            gateway=payment.gateway.value,
            status=payment.status.value,
        )
        return payment

    async def get(self, payment_id: str) -> Optional[Payment]:
        doc = await self.store.get(collections.PAYMENTS, payment_id)
        return Payment.from_document(doc) if doc else None

    async def list_by_order(self, order_id: str) -> List[Payment]:
        docs = await self.store.query(
            collections.PAYMENTS,
            {"order_id": order_id},
            order_by="created_at",
            descending=True,
        )
        return [Payment.from_document(d) for d in docs]

    async def find_succeeded_for_order(self, order_id: str) -> Optional[Payment]:
        docs = await self.store.query(
            collections.PAYMENTS,
            {"order_id": order_id, "status": PaymentStatus.SUCCEEDED.value},
            limit=1,
        )
        return Payment.from_document(docs[0]) if docs else None

    async def list_succeeded_without_receipt(self) -> List[Payment]:
        docs = await self.store.query(
            collections.PAYMENTS,
            {"status": PaymentStatus.SUCCEEDED.value, "receipt_number": None},
            order_by="created_at",
        )
        return [Payment.from_document(d) for d in docs]

    async def get_by_transaction(self, gateway: GatewayName, transaction_id: str) -> Optional[Payment]:
        docs = await self.store.query(
            collections.PAYMENTS,
            {"gateway": GatewayName(gateway).value, "transaction_id": transaction_id},
            limit=1,
        )
        return Payment.from_document(docs[0]) if docs else None

    async def update_status(
        self,
        payment_id: str,
        expected: PaymentStatus,
        new_status: PaymentStatus,
        *,
        now: datetime,
    ) -> bool:
        applied = await self.store.compare_and_set(
            collections.PAYMENTS,
            payment_id,
            "status",
            [expected.value],
            {"status": new_status.value, "updated_at": dt_to_doc(now)},
        )
        logger.info(
            "payment_status_updated",
            payment_id=payment_id,
            expected=expected.value,
            status=new_status.value,
            applied=applied,
        )
        return applied

    async def claim_receipt(
        self,
        payment_id: str,
        receipt_id: str,
        *,
        now: datetime,
        expected: Optional[str] = None,
    ) -> bool:
        return await self.store.compare_and_set(
            collections.PAYMENTS,
            payment_id,
            "receipt_id",
            [expected],
            {
                "receipt_id": receipt_id,
                "receipt_claimed_at": dt_to_doc(now),
                "updated_at": dt_to_doc(now),
            },
        )

    async def attach_receipt(
        self,
        payment_id: str,
        *,
        receipt_id: str,
        receipt_number: str,
        receipt_details: dict,
        now: datetime,
    ) -> None:
        await self.store.update(
            collections.PAYMENTS,
            payment_id,
            {
                "receipt_id": receipt_id,
                "receipt_number": receipt_number,
                "receipt_details": receipt_details,
                "updated_at": dt_to_doc(now),
            },
        )


class DocumentAuditLogRepository(AuditLogRepository):

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        await self.store.set(collections.AUDIT_LOGS, entry.audit_id, entry.to_document())
        return entry

    async def query(
        self,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        filters = {}
        if payment_id:
            filters["payment_id"] = payment_id
        if order_id:
            filters["order_id"] = order_id
        docs = await self.store.query(
            collections.AUDIT_LOGS,
            filters,
            order_by="timestamp",
            descending=True,
        )
        return [AuditLogEntry.from_document(d) for d in docs]
