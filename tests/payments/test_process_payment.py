import re
from decimal import Decimal

import pytest

from application.dtos.payments import ProcessPaymentRequest
from domain.common.exceptions import (
    GatewayDeclineException,
    GatewayTimeoutException,
    PaymentValidationException,
)
from domain.payment.entity import MedicationDetail, OrderStatus, PaymentStatus
from infrastructure.container import build_payment_orchestrator
from infrastructure.external.payments.stripe_client import StripeGateway
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


def _request(card_data, **overrides):
    data = {
        "order_id": "O1",
        "gateway": "stripe",
        "amount": "45.50",
        "currency": "USD",
        "payment_data": card_data,
    }
    data.update(overrides)
    return ProcessPaymentRequest(**data)


@pytest.mark.asyncio
async def test_successful_card_payment(orchestrator, add_order, orders, card_data):
    await add_order(medication=MedicationDetail(name="Paracétamol 1g", quantity=2))

    result = await orchestrator.process_payment(_request(card_data), user_id="patient-1")

    assert re.fullmatch(r"ch_[a-z0-9]{24}", result.transaction_id)
    assert result.status == PaymentStatus.SUCCEEDED
    assert (await orders.get("O1")).status == OrderStatus.PAID

    payment = await orchestrator.get_payment(result.payment_id)
    assert payment.amount == Decimal("45.50")
    assert payment.user_id == "patient-1"
    assert payment.receipt_number == "BJ-2026-000001"
    assert payment.receipt_details["total_amount"] == "45.50"

    receipt = await orchestrator.get_receipt_by_payment_id(result.payment_id)
    assert receipt.receipt_number == "BJ-2026-000001"
    assert receipt.details.subtotal_amount == Decimal("38.56")
    assert receipt.details.tax_amount == Decimal("6.94")
    assert receipt.details.converted.total == Decimal("27300.00")

    actions = [e.action for e in await orchestrator.get_payment_audit_logs(payment_id=result.payment_id)]
    assert actions == ["payment_processed"]


@pytest.mark.asyncio
async def test_accepts_plain_mapping_request(orchestrator, add_order):
    await add_order(cost=Decimal("5000"), currency="XOF")
    result = await orchestrator.process_payment(
        {"order_id": "O1", "gateway": "MTN", "amount": 5000, "currency": "xof",
         "payment_data": {"phoneNumber": "+22997123456"}},
    )
    assert result.transaction_id.startswith("MTN")


@pytest.mark.asyncio
async def test_declined_card_leaves_order_payable(orchestrator, add_order, orders, declined_card_data):
    await add_order()

    with pytest.raises(GatewayDeclineException) as exc_info:
        await orchestrator.process_payment(_request(declined_card_data))
    assert exc_info.value.message == "Card declined by issuer"
    assert exc_info.value.code == PaymentCode.DECLINED

    order = await orders.get("O1")
    assert order.status == OrderStatus.AWAITING_PAYMENT
    assert order.claimed_at is None
    assert await orchestrator.get_payments_for_order("O1") == []

    (entry,) = await orchestrator.get_payment_audit_logs(order_id="O1")
    assert entry.action == "payment_failed"
    assert entry.error_details == "Card declined by issuer"


@pytest.mark.asyncio
async def test_mobile_money_insufficient_balance(orchestrator, add_order, orders):
    await add_order(cost=Decimal("5000"), currency="XOF")

    with pytest.raises(GatewayDeclineException) as exc_info:
        await orchestrator.process_payment(
            {"order_id": "O1", "gateway": "mtn", "amount": "5000", "currency": "XOF",
             "payment_data": {"phoneNumber": "+22990000123"}}
        )
    assert exc_info.value.message == "Insufficient balance in mobile money account"

    assert await orchestrator.get_payments_for_order("O1") == []
    assert (await orders.get("O1")).status == OrderStatus.AWAITING_PAYMENT
    (entry,) = await orchestrator.get_payment_audit_logs(order_id="O1")
    assert entry.action == "payment_failed"
    assert entry.error_details == "Insufficient balance in mobile money account"


@pytest.mark.asyncio
async def test_malformed_request_is_a_validation_error(orchestrator, add_order, orders):
    await add_order()

    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(
            {"order_id": "O1", "gateway": "stripe", "amount": "abc", "currency": 978, "payment_data": {}}
        )
    errors = exc_info.value.errors
    assert len(errors) == 2
    assert any(e.startswith("Invalid amount:") for e in errors)
    assert any(e.startswith("Invalid currency:") for e in errors)
    assert exc_info.value.message.startswith("Payment validation failed: ")
    assert (await orders.get("O1")).status == OrderStatus.AWAITING_PAYMENT

    (entry,) = await orchestrator.get_payment_audit_logs(order_id="O1")
    assert entry.action == "payment_rejected"
    assert "Invalid amount" in entry.error_details


@pytest.mark.asyncio
async def test_non_string_order_id_is_audited(orchestrator):
    with pytest.raises(PaymentValidationException, match="Invalid order_id"):
        await orchestrator.process_payment({"order_id": 42, "gateway": "stripe", "amount": "1", "currency": "USD"})

    (entry,) = await orchestrator.get_payment_audit_logs(order_id="42")
    assert entry.action == "payment_rejected"


@pytest.mark.asyncio
async def test_retry_after_decline_succeeds(orchestrator, add_order, orders, card_data, declined_card_data):
    await add_order()
    with pytest.raises(GatewayDeclineException):
        await orchestrator.process_payment(_request(declined_card_data))

    result = await orchestrator.process_payment(_request(card_data))
    assert result.status == PaymentStatus.SUCCEEDED
    assert (await orders.get("O1")).status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_unknown_order(orchestrator, card_data):
    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(_request(card_data, order_id="missing"))
    assert exc_info.value.errors == ["Order not found"]
    assert exc_info.value.code == BusinessCode.PARAM_VALIDATION_ERROR

    (entry,) = await orchestrator.get_payment_audit_logs(order_id="missing")
    assert entry.action == "payment_rejected"


@pytest.mark.asyncio
async def test_order_eligibility_violations_are_collected(orchestrator, add_order, card_data):
    await add_order(status=OrderStatus.PENDING_VERIFICATION, cost=None)

    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(_request(card_data))
    errors = exc_info.value.errors
    assert "Order is not ready for payment. Current status: pending_verification" in errors
    assert "Order cost is not set or invalid" in errors
    assert exc_info.value.message.startswith("Order validation failed: ")


@pytest.mark.asyncio
async def test_input_violations_are_collected(orchestrator, add_order):
    await add_order()

    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(
            ProcessPaymentRequest(order_id="O1", gateway="stripe", amount=Decimal("0"), currency=None)
        )
    errors = exc_info.value.errors
    assert "Valid amount is required" in errors
    assert "Currency is required" in errors
    assert "All card details are required for Stripe payments" in errors
    assert exc_info.value.message.startswith("Payment validation failed: ")


@pytest.mark.asyncio
async def test_unsupported_gateway(orchestrator, add_order):
    await add_order()
    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(
            ProcessPaymentRequest(order_id="O1", gateway="bitcoin", amount="45.50", currency="USD")
        )
    assert exc_info.value.errors == ["Unsupported payment gateway: bitcoin"]


@pytest.mark.asyncio
async def test_amount_and_currency_must_match_order(orchestrator, add_order, orders, card_data):
    await add_order()
    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(_request(card_data, amount="1.00", currency="EUR"))
    assert len(exc_info.value.errors) == 2
    assert (await orders.get("O1")).status == OrderStatus.AWAITING_PAYMENT


@pytest.mark.asyncio
async def test_paid_order_rejects_second_payment(orchestrator, add_order, card_data):
    await add_order()
    await orchestrator.process_payment(_request(card_data))

    with pytest.raises(PaymentValidationException) as exc_info:
        await orchestrator.process_payment(_request(card_data))
    assert "Order has already been paid" in exc_info.value.errors
    assert len(await orchestrator.get_payments_for_order("O1")) == 1


@pytest.mark.asyncio
async def test_gateway_timeout_releases_claim(store, add_order, orders, clock, card_data):
    from core.settings import GatewayLatency, PaymentSettings

    slow = PaymentSettings(gateway_timeout_seconds=0.05, latency=GatewayLatency(stripe=1, paypal=0, mtn=0))
    orchestrator = build_payment_orchestrator(store, settings=slow, clock=clock)
    await add_order()

    with pytest.raises(GatewayTimeoutException) as exc_info:
        await orchestrator.process_payment(_request(card_data))
    assert exc_info.value.code == PaymentCode.TIMEOUT
    assert (await orders.get("O1")).status == OrderStatus.AWAITING_PAYMENT
    (entry,) = await orchestrator.get_payment_audit_logs(order_id="O1")
    assert entry.action == "payment_failed"


@pytest.mark.asyncio
async def test_receipt_failure_does_not_fail_payment(store, add_order, orders, payment_settings, clock, card_data):
    class BrokenRenderer:
        media_type = "application/pdf"

        def render(self, details):
            raise RuntimeError("renderer down")

    orchestrator = build_payment_orchestrator(
        store, settings=payment_settings, renderer=BrokenRenderer(), clock=clock
    )
    await add_order()

    result = await orchestrator.process_payment(_request(card_data))
    assert result.status == PaymentStatus.SUCCEEDED
    assert (await orders.get("O1")).status == OrderStatus.PAID
    receipt = await orchestrator.get_receipt_by_payment_id(result.payment_id)
    assert receipt.receipt_number == "BJ-2026-000001"


@pytest.mark.asyncio
async def test_payment_queries(orchestrator, add_order, clock, card_data):
    from datetime import timedelta

    await add_order("A")
    await add_order("B")
    await orchestrator.process_payment(_request(card_data, order_id="A"))
    clock.now += timedelta(minutes=5)
    second = await orchestrator.process_payment(_request(card_data, order_id="B"))

    assert [p.payment_id for p in await orchestrator.get_payments_for_order("B")] == [second.payment_id]
    assert await orchestrator.get_payment("nope") is None


@pytest.mark.asyncio
async def test_custom_gateway_registry(store, add_order, payment_settings, clock, card_data):
    orchestrator = build_payment_orchestrator(
        store, settings=payment_settings, gateways={"stripe": StripeGateway()}, clock=clock
    )
    await add_order()
    with pytest.raises(PaymentValidationException):
        await orchestrator.process_payment(_request(card_data, gateway="paypal"))
