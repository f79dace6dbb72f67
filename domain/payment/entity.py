"""
Payment domain entities: the order being paid, payment attempts and the audit trail.

Keep this layer free of infrastructure dependencies. Entities convert to and
from plain JSON-safe documents for the persistence façade.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import (
    dec_from_doc,
    dec_to_doc,
    dt_from_doc,
    dt_to_doc,
    ensure_utc,
)


class OrderStatus(str, Enum):
    """Prescription order lifecycle"""
    PENDING_VERIFICATION = "pending_verification"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_PROCESSING = "payment_processing"  # claimed by an in-flight payment
    PAID = "paid"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GatewayName(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    MTN = "mtn"


@dataclass
class MedicationDetail:
    name: str
    quantity: int = 1

    def __post_init__(self):
        if self.quantity <= 0:
            raise DomainValidationException(
                f"Medication quantity must be positive: {self.quantity}",
                field="quantity",
            )


@dataclass
class Order:
    """
    Prescription fulfillment unit awaiting payment.

    Created outside the payment core; only its status is mutated here.
    """

    order_id: str
    status: OrderStatus
    cost: Optional[Decimal] = None
    currency: str = "XOF"
    medication: Optional[MedicationDetail] = None
    patient_id: Optional[str] = None
    claimed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = OrderStatus(self.status)
        self.claimed_at = ensure_utc(self.claimed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @property
    def has_valid_cost(self) -> bool:
        return self.cost is not None and self.cost > 0

    def to_document(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status.value,
            "cost": dec_to_doc(self.cost),
            "currency": self.currency,
            "medication": (
                {"name": self.medication.name, "quantity": self.medication.quantity}
                if self.medication else None
            ),
            "patient_id": self.patient_id,
            "claimed_at": dt_to_doc(self.claimed_at),
            "created_at": dt_to_doc(self.created_at),
            "updated_at": dt_to_doc(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Order":
        med = doc.get("medication")
        return cls(
            order_id=doc["order_id"],
            status=OrderStatus(doc["status"]),
            cost=dec_from_doc(doc.get("cost")),
            currency=doc.get("currency") or "XOF",
            medication=MedicationDetail(name=med["name"], quantity=int(med.get("quantity", 1))) if med else None,
            patient_id=doc.get("patient_id"),
            claimed_at=dt_from_doc(doc.get("claimed_at")),
            created_at=dt_from_doc(doc.get("created_at")),
            updated_at=dt_from_doc(doc.get("updated_at")),
        )


@dataclass
class Payment:
    """
    One authorized charge against an Order.

    Business rules:
    1. At most one payment per order ever reaches succeeded
    2. (gateway, transaction_id) is unique and keys webhook reconciliation
    3. A succeeded payment is never downgraded
    """

    payment_id: str
    order_id: str
    amount: Decimal
    currency: str
    gateway: GatewayName
    transaction_id: str
    status: PaymentStatus
    receipt_id: Optional[str] = None
    receipt_number: Optional[str] = None
    receipt_details: Optional[dict[str, Any]] = None
    # Set with receipt_id when a receipt is reserved, before its number exists
    receipt_claimed_at: Optional[datetime] = None
    gateway_response: Optional[dict[str, Any]] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.gateway = GatewayName(self.gateway)
        self.status = PaymentStatus(self.status)
        if self.amount <= 0:
            raise DomainValidationException(f"Payment amount must be positive: {self.amount}", field="amount")
        self.receipt_claimed_at = ensure_utc(self.receipt_claimed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    def can_transition_to(self, status: PaymentStatus) -> bool:
        # succeeded and failed are both terminal
        return self.status == PaymentStatus.PENDING and status != self.status

    def to_document(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "amount": dec_to_doc(self.amount),
            "currency": self.currency,
            "gateway": self.gateway.value,
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "receipt_id": self.receipt_id,
            "receipt_number": self.receipt_number,
            "receipt_details": self.receipt_details,
            "receipt_claimed_at": dt_to_doc(self.receipt_claimed_at),
            "gateway_response": self.gateway_response,
            "user_id": self.user_id,
            "created_at": dt_to_doc(self.created_at),
            "updated_at": dt_to_doc(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Payment":
        return cls(
            payment_id=doc["payment_id"],
            order_id=doc["order_id"],
            amount=dec_from_doc(doc["amount"]),
            currency=doc["currency"],
            gateway=GatewayName(doc["gateway"]),
            transaction_id=doc["transaction_id"],
            status=PaymentStatus(doc["status"]),
            receipt_id=doc.get("receipt_id"),
            receipt_number=doc.get("receipt_number"),
            receipt_details=doc.get("receipt_details"),
            receipt_claimed_at=dt_from_doc(doc.get("receipt_claimed_at")),
            gateway_response=doc.get("gateway_response"),
            user_id=doc.get("user_id"),
            created_at=dt_from_doc(doc.get("created_at")),
            updated_at=dt_from_doc(doc.get("updated_at")),
        )


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only trace of one orchestration step"""

    audit_id: str
    action: str
    timestamp: datetime
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    gateway_response: Optional[dict[str, Any]] = None
    error_details: Optional[str] = None
    user_id: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "audit_id": self.audit_id,
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "action": self.action,
            "timestamp": dt_to_doc(self.timestamp),
            "gateway_response": self.gateway_response,
            "error_details": self.error_details,
            "user_id": self.user_id,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "AuditLogEntry":
        return cls(
            audit_id=doc["audit_id"],
            action=doc["action"],
            timestamp=dt_from_doc(doc["timestamp"]),
            payment_id=doc.get("payment_id"),
            order_id=doc.get("order_id"),
            gateway_response=doc.get("gateway_response"),
            error_details=doc.get("error_details"),
            user_id=doc.get("user_id"),
        )
