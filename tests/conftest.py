"""Pytest bootstrap configuration.

Environment defaults are set before any module that reads settings is
imported, then shared fixtures build a fully wired payment core on the
in-memory document store with zero gateway latency and a fixed clock.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DOCUMENT_STORE__BACKEND", "memory")

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from core.settings import GatewayLatency, PaymentSettings  # noqa: E402
from domain.payment.entity import MedicationDetail, Order, OrderStatus, PaymentStatus  # noqa: E402
from infrastructure.container import build_payment_orchestrator  # noqa: E402
from infrastructure.document_store.memory import InMemoryDocumentStore  # noqa: E402
from infrastructure.external.payments import build_gateway_registry  # noqa: E402
from infrastructure.external.payments.mtn_client import MtnMobileMoneyGateway  # noqa: E402
from infrastructure.repositories.payment_repository import DocumentOrderRepository  # noqa: E402


FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def payment_settings():
    return PaymentSettings(latency=GatewayLatency(stripe=0, paypal=0, mtn=0))


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def orchestrator(store, payment_settings, clock):
    return build_payment_orchestrator(store, settings=payment_settings, clock=clock)


class PendingMtnGateway(MtnMobileMoneyGateway):
    """Leaves the outcome to a later webhook, like a real request-to-pay."""

    async def authorize(self, order_id, amount, currency, payment_data):
        authorization = await super().authorize(order_id, amount, currency, payment_data)
        return authorization.model_copy(update={"status": PaymentStatus.PENDING})


@pytest.fixture
def pending_mtn_orchestrator(store, payment_settings, clock):
    gateways = build_gateway_registry(payment_settings)
    gateways["mtn"] = PendingMtnGateway(latency=0)
    return build_payment_orchestrator(store, settings=payment_settings, gateways=gateways, clock=clock)


@pytest.fixture
def add_order(store, clock):
    """Persist an order; returns an async factory."""
    repo = DocumentOrderRepository(store)

    async def _add(
        order_id: str = "O1",
        *,
        status: OrderStatus = OrderStatus.AWAITING_PAYMENT,
        cost: Decimal | None = Decimal("45.50"),
        currency: str = "USD",
        medication: MedicationDetail | None = None,
    ) -> Order:
        order = Order(
            order_id=order_id,
            status=status,
            cost=cost,
            currency=currency,
            medication=medication,
            patient_id="patient-1",
            created_at=clock(),
            updated_at=clock(),
        )
        return await repo.add(order)

    return _add


@pytest.fixture
def orders(store):
    return DocumentOrderRepository(store)


@pytest.fixture
def card_data():
    return {
        "cardNumber": "4242 4242 4242 4242",
        "expiryDate": "12/28",
        "cvv": "123",
        "cardholderName": "Ada Mensah",
    }


@pytest.fixture
def declined_card_data(card_data):
    return {**card_data, "cardNumber": "4000 0000 0000 0000"}
