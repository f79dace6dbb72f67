"""
Mobile-money gateway (MTN MoMo-style request-to-pay), simulated.

Phone numbers containing DECLINE_MARKER are always declined for
insufficient balance.
"""
from __future__ import annotations

import string
from decimal import Decimal
from typing import Any, Optional

from application.dtos.payments import GatewayAuthorization
from domain.payment.entity import PaymentStatus
from infrastructure.external.payments.base import BaseSimulatedGateway


DECLINE_MARKER = "0000"


class MtnMobileMoneyGateway(BaseSimulatedGateway):
    name = "mtn"

    def validate(self, payment_data: dict[str, Any]) -> list[str]:
        if self._missing(payment_data, ("phoneNumber",)):
            return ["Phone number is required for MTN Mobile Money"]
        return []

    async def authorize(  # type: ignore[override]
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        payment_data: dict[str, Any],
    ) -> GatewayAuthorization:
        await self._simulate_latency()

        phone_number = str(payment_data["phoneNumber"])
        if DECLINE_MARKER in phone_number:
            raise self._decline(
                "Insufficient balance in mobile money account",
                order_id=order_id,
                decline_code="insufficient_balance",
            )

        alphabet = string.ascii_uppercase + string.digits
        transaction_id = "MTN" + self._random_id(10, alphabet)
        gateway_response = {
            "transactionId": transaction_id,
            "status": "SUCCESSFUL",
            "amount": str(amount),
            "currency": currency,
            "externalTransactionId": "EXT" + self._random_id(8, alphabet),
            "financialTransactionId": "FIN" + self._random_id(12, alphabet),
            "payerMessage": "Payment for prescription order",
            "payeeNote": f"Order {order_id}",
            "reason": "Payment completed successfully",
        }
        self._log("gateway_authorized", order_id=order_id, transaction_id=transaction_id)
        return GatewayAuthorization(
            transaction_id=transaction_id,
            status=PaymentStatus.SUCCEEDED,
            gateway_response=gateway_response,
        )

    def _webhook_event_type(self, payload: dict[str, Any]) -> Optional[str]:
        return payload.get("status")

    def _webhook_transaction_id(self, payload: dict[str, Any]) -> Optional[str]:
        return payload.get("transactionId")
