"""
Webhook signature verification hooks.
"""
from __future__ import annotations

from typing import Any, Optional

from application.ports.payment_gateway import WebhookSignatureVerifier


class SignaturePresenceVerifier(WebhookSignatureVerifier):
    """Accepts any non-empty signature.

    Placeholder until per-gateway verification (Stripe-Signature HMAC,
    PayPal transmission verification, MTN callback keys) is wired in.
    """

    def verify(self, gateway: str, payload: dict[str, Any], signature: Optional[str]) -> bool:
        return bool(signature and signature.strip())
