"""
Payment repository interfaces - what the payment core needs from persistence.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from .entity import AuditLogEntry, GatewayName, Order, OrderStatus, Payment, PaymentStatus


class OrderRepository(ABC):
    """Orders are created elsewhere; the payment core reads them and moves their status."""

    @abstractmethod
    async def add(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def transition(
        self,
        order_id: str,
        expected: Iterable[OrderStatus],
        new_status: OrderStatus,
        *,
        now: datetime,
        claimed_at: Optional[datetime] = None,
    ) -> bool:
        """Conditionally move an order to new_status.

        Returns False when the current status is not one of `expected`.
        """
        pass

    @abstractmethod
    async def list_by_status(self, status: OrderStatus) -> List[Order]:
        pass


class PaymentRepository(ABC):

    @abstractmethod
    async def add(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def get(self, payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[Payment]:
        """Payments for an order, newest first"""
        pass

    @abstractmethod
    async def find_succeeded_for_order(self, order_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def list_succeeded_without_receipt(self) -> List[Payment]:
        pass

    @abstractmethod
    async def get_by_transaction(self, gateway: GatewayName, transaction_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def update_status(
        self,
        payment_id: str,
        expected: PaymentStatus,
        new_status: PaymentStatus,
        *,
        now: datetime,
    ) -> bool:
        """Compare-and-set the payment status; False if it changed underneath."""
        pass

    @abstractmethod
    async def claim_receipt(
        self,
        payment_id: str,
        receipt_id: str,
        *,
        now: datetime,
        expected: Optional[str] = None,
    ) -> bool:
        """Reserve receipt_id for a payment whose current reservation is `expected`.

        With expected=None this only succeeds for a payment without any receipt.
        """
        pass

    @abstractmethod
    async def attach_receipt(
        self,
        payment_id: str,
        *,
        receipt_id: str,
        receipt_number: str,
        receipt_details: dict,
        now: datetime,
    ) -> None:
        pass


class AuditLogRepository(ABC):
    """Append-only: there is deliberately no update or delete."""

    @abstractmethod
    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        pass

    @abstractmethod
    async def query(
        self,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        """Entries newest first"""
        pass
