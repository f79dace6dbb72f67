"""
Factory for payment gateway strategies.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import GatewayStrategy
from core.settings import PaymentSettings, payment_settings


def build_gateway_registry(settings: Optional[PaymentSettings] = None) -> dict[str, GatewayStrategy]:
    """Map gateway name -> strategy. New gateways only need an entry here."""
    from .mtn_client import MtnMobileMoneyGateway
    from .paypal_client import PayPalGateway
    from .stripe_client import StripeGateway

    cfg = settings or payment_settings
    strategies: list[GatewayStrategy] = [
        StripeGateway(latency=cfg.latency.stripe),
        PayPalGateway(latency=cfg.latency.paypal),
        MtnMobileMoneyGateway(latency=cfg.latency.mtn),
    ]
    return {s.name: s for s in strategies}
