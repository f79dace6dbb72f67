"""
Card gateway (Stripe-style charges), simulated.

Cards whose number ends in DECLINE_SUFFIX are always declined by the
"issuer". This is the documented, reproducible test-failure path.
"""
from __future__ import annotations

import string
import time
from decimal import Decimal
from typing import Any, Optional

from application.dtos.payments import GatewayAuthorization
from domain.payment.entity import PaymentStatus
from infrastructure.external.payments.base import BaseSimulatedGateway


CARD_FIELDS = ("cardNumber", "expiryDate", "cvv", "cardholderName")
DECLINE_SUFFIX = "0000"


class StripeGateway(BaseSimulatedGateway):
    name = "stripe"

    def validate(self, payment_data: dict[str, Any]) -> list[str]:
        if self._missing(payment_data, CARD_FIELDS):
            return ["All card details are required for Stripe payments"]
        return []

    async def authorize(  # type: ignore[override]
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        payment_data: dict[str, Any],
    ) -> GatewayAuthorization:
        await self._simulate_latency()

        card_number = str(payment_data["cardNumber"]).replace(" ", "")
        if card_number.endswith(DECLINE_SUFFIX):
            raise self._decline("Card declined by issuer", order_id=order_id, decline_code="card_declined")

        transaction_id = "ch_" + self._random_id(24, string.ascii_lowercase + string.digits)
        gateway_response = {
            "id": transaction_id,
            "amount": self._to_minor(amount, currency),
            "currency": currency.lower(),
            "status": "succeeded",
            "payment_method": {
                "card": {
                    "brand": "visa",
                    "last4": card_number[-4:],
                },
            },
            "created": int(time.time()),
        }
        self._log("gateway_authorized", order_id=order_id, transaction_id=transaction_id)
        return GatewayAuthorization(
            transaction_id=transaction_id,
            status=PaymentStatus.SUCCEEDED,
            gateway_response=gateway_response,
        )

    def _webhook_event_type(self, payload: dict[str, Any]) -> Optional[str]:
        return payload.get("type")

    def _webhook_transaction_id(self, payload: dict[str, Any]) -> Optional[str]:
        obj = (payload.get("data") or {}).get("object") or {}
        return obj.get("id")
