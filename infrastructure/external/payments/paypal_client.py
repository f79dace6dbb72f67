"""
Redirect gateway (PayPal-style captures), simulated.

The buyer approves on the provider's page, so no card fields are needed
here and there is no deterministic decline path.
"""
from __future__ import annotations

import string
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from application.dtos.payments import GatewayAuthorization
from domain.payment.entity import PaymentStatus
from infrastructure.external.payments.base import BaseSimulatedGateway


class PayPalGateway(BaseSimulatedGateway):
    name = "paypal"

    async def authorize(  # type: ignore[override]
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        payment_data: dict[str, Any],
    ) -> GatewayAuthorization:
        await self._simulate_latency()

        transaction_id = "PP" + self._random_id(12, string.ascii_uppercase + string.digits)
        gateway_response = {
            "id": transaction_id,
            "intent": "CAPTURE",
            "status": "COMPLETED",
            "purchase_units": [
                {
                    "reference_id": order_id,
                    "amount": {"currency_code": currency, "value": str(amount)},
                }
            ],
            "create_time": datetime.now(timezone.utc).isoformat(),
        }
        self._log("gateway_authorized", order_id=order_id, transaction_id=transaction_id)
        return GatewayAuthorization(
            transaction_id=transaction_id,
            status=PaymentStatus.SUCCEEDED,
            gateway_response=gateway_response,
        )

    def _webhook_event_type(self, payload: dict[str, Any]) -> Optional[str]:
        return payload.get("event_type")

    def _webhook_transaction_id(self, payload: dict[str, Any]) -> Optional[str]:
        return (payload.get("resource") or {}).get("id")
