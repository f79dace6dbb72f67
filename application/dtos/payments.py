"""
Payment DTOs (Pydantic v2) used at application boundaries.

Request fields are deliberately lenient: missing or invalid values are
collected by the orchestrator into a single PaymentValidationException
listing every violation, instead of failing on the first one here.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from domain.payment.entity import PaymentStatus


class ProcessPaymentRequest(BaseModel):
    order_id: Optional[str] = None
    gateway: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v

    @field_validator("gateway")
    @classmethod
    def _lower_gateway(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v

    @field_validator("payment_data", mode="before")
    @classmethod
    def _default_payment_data(cls, v: Any) -> Any:
        return v or {}


class ProcessPaymentResult(BaseModel):
    payment_id: str
    transaction_id: str
    status: PaymentStatus
    gateway_response: Optional[dict[str, Any]] = None


class GatewayAuthorization(BaseModel):
    transaction_id: str
    status: PaymentStatus = PaymentStatus.SUCCEEDED
    gateway_response: dict[str, Any] = Field(default_factory=dict)


class WebhookNotice(BaseModel):
    """Gateway webhook normalized to the payment it concerns and its outcome."""

    transaction_id: str
    status: PaymentStatus
    event_type: Optional[str] = None


class ReconciliationReport(BaseModel):
    orders_advanced: list[str] = Field(default_factory=list)
    claims_released: list[str] = Field(default_factory=list)
    receipts_generated: list[str] = Field(default_factory=list)
