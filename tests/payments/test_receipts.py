from datetime import timedelta
from decimal import Decimal

import pytest

from application.dtos.payments import ProcessPaymentRequest
from domain.common.exceptions import PaymentNotFoundException, PaymentValidationException
from domain.common.values import utcnow
from domain.payment.entity import MedicationDetail, OrderStatus, Payment, PaymentStatus
from domain.receipt.entity import CustomerInfo, PharmacyInfo, ReceiptDetails
from infrastructure.receipts.pdf_renderer import FpdfReceiptRenderer, format_currency
from infrastructure.repositories.payment_repository import DocumentPaymentRepository


async def _paid(orchestrator, add_order, card_data, **order_kwargs):
    await add_order(**order_kwargs)
    return await orchestrator.process_payment(
        ProcessPaymentRequest(order_id="O1", gateway="stripe", amount="45.50", currency="USD", payment_data=card_data)
    )


@pytest.mark.asyncio
async def test_receipt_details(orchestrator, add_order, card_data):
    result = await _paid(
        orchestrator, add_order, card_data,
        medication=MedicationDetail(name="Amoxicilline 500mg", quantity=2),
    )
    receipt = await orchestrator.get_receipt_by_payment_id(result.payment_id)
    details = receipt.details

    assert details.receipt_number == "BJ-2026-000001"
    assert details.tax_rate == Decimal("0.18")
    assert details.total_amount == Decimal("45.50")
    assert details.subtotal_amount + details.tax_amount == details.total_amount
    assert details.currency == "USD"
    assert details.exchange_rate == Decimal("600")
    assert details.converted.currency == "XOF"
    assert details.converted.subtotal + details.converted.tax == details.converted.total
    assert details.gateway == "stripe"
    assert details.transaction_id == result.transaction_id
    assert details.pharmacy.name == "PharmaRx - Pharmacie Moderne"
    (item,) = details.line_items
    assert item.name == "Amoxicilline 500mg"
    assert item.quantity == 2
    assert "Code Général des Impôts du Bénin" in details.legal_text_french
    assert "TVA comprise au taux de 18%" in details.legal_text_french
    assert "Benin General Tax Code" in details.legal_text_english
    assert "VAT included at 18% rate" in details.legal_text_english


@pytest.mark.asyncio
async def test_settlement_currency_has_no_conversion(orchestrator, add_order):
    await add_order(cost=Decimal("27300"), currency="XOF")
    result = await orchestrator.process_payment(
        ProcessPaymentRequest(order_id="O1", gateway="mtn", amount="27300", currency="XOF",
                              payment_data={"phoneNumber": "+22997123456"})
    )
    details = (await orchestrator.get_receipt_by_payment_id(result.payment_id)).details
    assert details.exchange_rate is None
    assert details.converted is None
    assert details.subtotal_amount == Decimal("23135.59")
    assert details.tax_amount == Decimal("4164.41")


@pytest.mark.asyncio
async def test_regeneration_keeps_number_and_bytes(orchestrator, add_order, clock, card_data):
    result = await _paid(orchestrator, add_order, card_data)
    first = await orchestrator.generate_receipt_for_payment(result.payment_id)
    clock.now += timedelta(days=1)
    second = await orchestrator.generate_receipt_for_payment(result.payment_id)

    assert first.receipt_number == second.receipt_number == "BJ-2026-000001"
    assert first.receipt_id == second.receipt_id
    assert first.document == second.document
    assert first.document.startswith(b"%PDF")
    assert await orchestrator.get_receipt_pdf(first.receipt_id) == first.document


@pytest.mark.asyncio
async def test_renderer_failure_keeps_issued_number(store, add_order, payment_settings, clock, card_data):
    from infrastructure.container import build_payment_orchestrator

    class FlakyRenderer:
        media_type = "application/pdf"
        broken = True

        def render(self, details):
            if self.broken:
                raise RuntimeError("renderer down")
            return b"%PDF-stub " + details.receipt_number.encode()

    renderer = FlakyRenderer()
    orchestrator = build_payment_orchestrator(store, settings=payment_settings, renderer=renderer, clock=clock)
    result = await _paid(orchestrator, add_order, card_data)

    stored = await orchestrator.get_receipt_by_payment_id(result.payment_id)
    assert stored.receipt_number == "BJ-2026-000001"
    assert (await orchestrator.get_payment(result.payment_id)).receipt_number == "BJ-2026-000001"

    renderer.broken = False
    receipt = await orchestrator.generate_receipt_for_payment(result.payment_id)
    assert receipt.receipt_id == stored.receipt_id
    assert receipt.document == b"%PDF-stub BJ-2026-000001"
    assert (await orchestrator.reconcile()).receipts_generated == []


@pytest.mark.asyncio
async def test_receipt_with_custom_pharmacy_and_customer(orchestrator, store, add_order):
    await add_order(cost=Decimal("5000"), currency="XOF", status=OrderStatus.PAID)
    now = utcnow()
    await DocumentPaymentRepository(store).add(
        Payment(
            payment_id="pay-1", order_id="O1", amount=Decimal("5000"), currency="XOF", gateway="paypal",
            transaction_id="PPABCDEFGHIJKL", status=PaymentStatus.SUCCEEDED, created_at=now, updated_at=now,
        )
    )
    pharmacy = PharmacyInfo(
        name="Pharmacie du Port", address="Porto-Novo", phone="+229 20 00 00 00",
        email="port@example.bj", license_number="PHM-2", tax_id="NIF-2",
    )
    customer = CustomerInfo(name="Koffi Agbo", address="Cotonou", tax_id="NIF-C-1")

    result = await orchestrator.generate_receipt_for_payment("pay-1", pharmacy, customer)

    assert result.details.pharmacy == pharmacy
    assert result.details.customer == customer
    assert result.media_type == "application/pdf"
    payment = await orchestrator.get_payment("pay-1")
    assert payment.receipt_id == result.receipt_id
    assert ReceiptDetails.from_document(payment.receipt_details) == result.details


@pytest.mark.asyncio
async def test_receipt_requires_existing_succeeded_payment(orchestrator, store, add_order):
    with pytest.raises(PaymentNotFoundException):
        await orchestrator.generate_receipt_for_payment("missing")

    await add_order(cost=Decimal("5000"), currency="XOF", status=OrderStatus.PAYMENT_PROCESSING)
    now = utcnow()
    await DocumentPaymentRepository(store).add(
        Payment(
            payment_id="pay-1", order_id="O1", amount=Decimal("5000"), currency="XOF", gateway="mtn",
            transaction_id="MTN0123456789", status=PaymentStatus.PENDING, created_at=now, updated_at=now,
        )
    )
    with pytest.raises(PaymentValidationException):
        await orchestrator.generate_receipt_for_payment("pay-1")
    assert await orchestrator.get_receipt_by_payment_id("pay-1") is None


@pytest.mark.asyncio
async def test_unknown_receipt_pdf(orchestrator):
    assert await orchestrator.get_receipt_pdf("nope") is None


@pytest.mark.asyncio
async def test_numbering_restarts_each_year(orchestrator, add_order, clock, card_data):
    from datetime import datetime, timezone

    clock.now = datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc)
    await add_order("A")
    a = await orchestrator.process_payment(
        ProcessPaymentRequest(order_id="A", gateway="stripe", amount="45.50", currency="USD", payment_data=card_data)
    )
    clock.now = datetime(2027, 1, 1, 0, 1, tzinfo=timezone.utc)
    await add_order("B")
    b = await orchestrator.process_payment(
        ProcessPaymentRequest(order_id="B", gateway="stripe", amount="45.50", currency="USD", payment_data=card_data)
    )

    assert (await orchestrator.get_receipt_by_payment_id(a.payment_id)).receipt_number == "BJ-2026-000001"
    assert (await orchestrator.get_receipt_by_payment_id(b.payment_id)).receipt_number == "BJ-2027-000001"


def test_format_currency():
    assert format_currency(Decimal("27300.00"), "XOF") == "27 300 FCFA"
    assert format_currency(Decimal("0.5"), "XOF") == "1 FCFA"
    assert format_currency(Decimal("45.5"), "USD") == "$45.50"
    assert format_currency(Decimal("10"), "EUR") == "10.00 EUR"


@pytest.mark.asyncio
async def test_renderer_handles_non_latin_text(orchestrator, store, add_order):
    await add_order(cost=Decimal("5000"), currency="XOF", status=OrderStatus.PAID)
    now = utcnow()
    await DocumentPaymentRepository(store).add(
        Payment(
            payment_id="pay-1", order_id="O1", amount=Decimal("5000"), currency="XOF", gateway="mtn",
            transaction_id="MTN0123456789", status=PaymentStatus.SUCCEEDED, created_at=now, updated_at=now,
        )
    )
    result = await orchestrator.generate_receipt_for_payment("pay-1", customer=CustomerInfo(name="Ọlá Àdìgún 李"))
    assert FpdfReceiptRenderer().render(result.details) == result.document
