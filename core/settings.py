"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so the payment core can be configured
(and overridden in tests) without touching project-wide settings.
"""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayLatency(BaseModel):
    """Simulated processing latency per gateway, in seconds."""

    stripe: float = 2.0
    paypal: float = 1.5
    mtn: float = 3.0


class WebhookSettings(BaseModel):
    require_signature: bool = True


class PharmacySettings(BaseModel):
    name: str = "PharmaRx - Pharmacie Moderne"
    address: str = "123 Avenue de la République, Cotonou, Bénin"
    phone: str = "+229 21 30 45 67"
    email: str = "contact@pharmarx.bj"
    license_number: str = "PHM-BJ-2024-001"
    tax_id: str = "NIF-BJ-20240001234"


class ReceiptSettings(BaseModel):
    number_prefix: str = "BJ"
    # TVA (Taxe sur la Valeur Ajoutée) for Benin
    tax_rate: Decimal = Decimal("0.18")
    settlement_currency: str = "XOF"
    # Units of settlement currency per 1 unit of the keyed currency
    exchange_rates: dict[str, Decimal] = Field(default_factory=lambda: {"USD": Decimal("600")})


class PaymentSettings(BaseSettings):
    gateway_timeout_seconds: float = 30.0
    # Orders stuck in payment_processing longer than this are released by reconciliation
    claim_ttl_seconds: int = 900
    latency: GatewayLatency = Field(default_factory=GatewayLatency)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    receipt: ReceiptSettings = Field(default_factory=ReceiptSettings)
    pharmacy: PharmacySettings = Field(default_factory=PharmacySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
