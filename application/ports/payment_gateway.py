"""
Payment gateway port (application/ports) exposing a replaceable strategy protocol.

Application depends on these Protocols; infrastructure implements adapters
and the composition root registers them by gateway name.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import GatewayAuthorization, WebhookNotice


@runtime_checkable
class GatewayStrategy(Protocol):
    """Uniform contract for one payment gateway.

    `authorize` either returns an authorization or raises
    GatewayDeclineException; it must not touch persistence.
    """

    name: str

    def validate(self, payment_data: dict[str, Any]) -> list[str]: ...

    async def authorize(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        payment_data: dict[str, Any],
    ) -> GatewayAuthorization: ...

    def parse_webhook(self, payload: dict[str, Any]) -> Optional[WebhookNotice]: ...


@runtime_checkable
class WebhookSignatureVerifier(Protocol):
    """Hook deciding whether a webhook body really comes from the gateway."""

    def verify(self, gateway: str, payload: dict[str, Any], signature: Optional[str]) -> bool: ...
