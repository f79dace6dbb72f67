"""
Receipt domain entities.

A Receipt is the immutable, tax-compliant record of a succeeded Payment.
ReceiptDetails carries everything needed to render the document again, so
rendered bytes are never stored.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from domain.common.values import dec_from_doc, dec_to_doc, dt_from_doc, dt_to_doc


@dataclass(frozen=True)
class PharmacyInfo:
    name: str
    address: str
    phone: str
    email: str
    license_number: str
    tax_id: str

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "license_number": self.license_number,
            "tax_id": self.tax_id,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "PharmacyInfo":
        return cls(**{k: doc[k] for k in ("name", "address", "phone", "email", "license_number", "tax_id")})


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    address: Optional[str] = None
    tax_id: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "address": self.address, "tax_id": self.tax_id}

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "CustomerInfo":
        return cls(name=doc["name"], address=doc.get("address"), tax_id=doc.get("tax_id"))


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    prescription: bool = True

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": dec_to_doc(self.unit_price),
            "total_price": dec_to_doc(self.total_price),
            "prescription": self.prescription,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "LineItem":
        return cls(
            name=doc["name"],
            quantity=int(doc["quantity"]),
            unit_price=dec_from_doc(doc["unit_price"]),
            total_price=dec_from_doc(doc["total_price"]),
            prescription=bool(doc.get("prescription", True)),
        )


@dataclass(frozen=True)
class TaxBreakdown:
    """Tax-inclusive total split into subtotal and tax; total == subtotal + tax."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal
    currency: str

    def to_document(self) -> dict[str, Any]:
        return {
            "subtotal": dec_to_doc(self.subtotal),
            "tax": dec_to_doc(self.tax),
            "total": dec_to_doc(self.total),
            "currency": self.currency,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "TaxBreakdown":
        return cls(
            subtotal=dec_from_doc(doc["subtotal"]),
            tax=dec_from_doc(doc["tax"]),
            total=dec_from_doc(doc["total"]),
            currency=doc["currency"],
        )


@dataclass(frozen=True)
class ReceiptDetails:
    receipt_number: str
    issue_date: datetime
    tax_rate: Decimal
    subtotal_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    gateway: str
    transaction_id: str
    pharmacy: PharmacyInfo
    line_items: tuple[LineItem, ...]
    legal_text_french: str
    legal_text_english: str
    customer: Optional[CustomerInfo] = None
    exchange_rate: Optional[Decimal] = None
    # Same breakdown expressed in the settlement currency, when converted
    converted: Optional[TaxBreakdown] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "receipt_number": self.receipt_number,
            "issue_date": dt_to_doc(self.issue_date),
            "tax_rate": dec_to_doc(self.tax_rate),
            "subtotal_amount": dec_to_doc(self.subtotal_amount),
            "tax_amount": dec_to_doc(self.tax_amount),
            "total_amount": dec_to_doc(self.total_amount),
            "currency": self.currency,
            "gateway": self.gateway,
            "transaction_id": self.transaction_id,
            "pharmacy": self.pharmacy.to_document(),
            "customer": self.customer.to_document() if self.customer else None,
            "line_items": [item.to_document() for item in self.line_items],
            "legal_text": {"french": self.legal_text_french, "english": self.legal_text_english},
            "exchange_rate": dec_to_doc(self.exchange_rate),
            "converted": self.converted.to_document() if self.converted else None,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ReceiptDetails":
        legal = doc.get("legal_text") or {}
        return cls(
            receipt_number=doc["receipt_number"],
            issue_date=dt_from_doc(doc["issue_date"]),
            tax_rate=dec_from_doc(doc["tax_rate"]),
            subtotal_amount=dec_from_doc(doc["subtotal_amount"]),
            tax_amount=dec_from_doc(doc["tax_amount"]),
            total_amount=dec_from_doc(doc["total_amount"]),
            currency=doc["currency"],
            gateway=doc["gateway"],
            transaction_id=doc["transaction_id"],
            pharmacy=PharmacyInfo.from_document(doc["pharmacy"]),
            customer=CustomerInfo.from_document(doc["customer"]) if doc.get("customer") else None,
            line_items=tuple(LineItem.from_document(i) for i in doc.get("line_items") or []),
            legal_text_french=legal.get("french", ""),
            legal_text_english=legal.get("english", ""),
            exchange_rate=dec_from_doc(doc.get("exchange_rate")),
            converted=TaxBreakdown.from_document(doc["converted"]) if doc.get("converted") else None,
        )


@dataclass(frozen=True)
class Receipt:
    receipt_id: str
    receipt_number: str
    payment_id: str
    order_id: str
    gateway: str
    details: ReceiptDetails
    created_at: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "receipt_id": self.receipt_id,
            "receipt_number": self.receipt_number,
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "gateway": self.gateway,
            "receipt_details": self.details.to_document(),
            "created_at": dt_to_doc(self.created_at),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Receipt":
        return cls(
            receipt_id=doc["receipt_id"],
            receipt_number=doc["receipt_number"],
            payment_id=doc["payment_id"],
            order_id=doc["order_id"],
            gateway=doc["gateway"],
            details=ReceiptDetails.from_document(doc["receipt_details"]),
            created_at=dt_from_doc(doc.get("created_at")),
        )
