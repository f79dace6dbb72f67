"""
Base gateway strategy implementing shared concerns: latency, ids, logging, webhook mapping.

Concrete gateways subclass and implement provider-specific validation,
authorization and webhook field extraction. Calls are simulated: there is
no SDK or network traffic, only the documented success/decline contract.
"""
from __future__ import annotations

import asyncio
import secrets
from decimal import Decimal
from typing import Any, Optional

from application.dtos.payments import GatewayAuthorization, WebhookNotice
from application.ports.payment_gateway import GatewayStrategy
from core.logging_config import get_logger
from domain.common.exceptions import GatewayDeclineException
from domain.payment.entity import PaymentStatus
from shared.codes.payment_codes import WEBHOOK_OUTCOME_TO_STATUS


logger = get_logger(__name__)

# ISO-4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "XOF", "XAF"}


class BaseSimulatedGateway(GatewayStrategy):
    name: str = "base"

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency

    async def _simulate_latency(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    @staticmethod
    def _random_id(length: int, alphabet: str) -> str:
        return "".join(secrets.choice(alphabet) for _ in range(length))

    @staticmethod
    def _to_minor(amount: Decimal, currency: str) -> int:
        # Amount in the smallest currency unit
        exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
        return int((amount * (Decimal(10) ** exponent)).to_integral_value())

    @staticmethod
    def _missing(payment_data: dict[str, Any], fields: tuple[str, ...]) -> list[str]:
        return [f for f in fields if not str(payment_data.get(f) or "").strip()]

    def validate(self, payment_data: dict[str, Any]) -> list[str]:
        return []

    async def authorize(  # type: ignore[override]
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        payment_data: dict[str, Any],
    ) -> GatewayAuthorization:
        raise NotImplementedError

    # Webhooks
    def _webhook_event_type(self, payload: dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    def _webhook_transaction_id(self, payload: dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    def parse_webhook(self, payload: dict[str, Any]) -> Optional[WebhookNotice]:
        if not isinstance(payload, dict):
            return None
        event_type = self._webhook_event_type(payload)
        status = WEBHOOK_OUTCOME_TO_STATUS.get(self.name, {}).get(event_type or "")
        if status is None:
            return None
        transaction_id = self._webhook_transaction_id(payload)
        if not transaction_id:
            return None
        return WebhookNotice(transaction_id=str(transaction_id), status=PaymentStatus(status), event_type=event_type)

    # Helpers
    def _decline(self, message: str, *, order_id: str, decline_code: str) -> GatewayDeclineException:
        self._log("gateway_declined", order_id=order_id, decline_code=decline_code)
        return GatewayDeclineException(message, gateway=self.name, decline_code=decline_code)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            gateway=self.name,
            **kwargs,
        )
