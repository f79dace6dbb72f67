import asyncio
from decimal import Decimal

import pytest

from application.dtos.payments import ProcessPaymentRequest
from domain.common.exceptions import PaymentValidationException
from domain.common.values import utcnow
from domain.payment.entity import OrderStatus, Payment, PaymentStatus
from domain.receipt.numbering import parse_receipt_number
from infrastructure.repositories.payment_repository import DocumentPaymentRepository


@pytest.mark.asyncio
async def test_concurrent_payments_on_one_order_charge_once(orchestrator, add_order, orders, card_data):
    await add_order()
    request = ProcessPaymentRequest(
        order_id="O1", gateway="stripe", amount="45.50", currency="USD", payment_data=card_data
    )

    results = await asyncio.gather(
        *(orchestrator.process_payment(request) for _ in range(5)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, PaymentValidationException)]
    assert len(succeeded) == 1
    assert len(rejected) == 4
    assert len(await orchestrator.get_payments_for_order("O1")) == 1
    assert (await orders.get("O1")).status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_concurrent_receipts_get_unique_sequential_numbers(orchestrator, add_order, card_data):
    count = 12
    for i in range(count):
        await add_order(f"O{i}")

    results = await asyncio.gather(
        *(
            orchestrator.process_payment(
                ProcessPaymentRequest(
                    order_id=f"O{i}", gateway="stripe", amount="45.50", currency="USD", payment_data=card_data
                )
            )
            for i in range(count)
        )
    )

    numbers = []
    for result in results:
        receipt = await orchestrator.get_receipt_by_payment_id(result.payment_id)
        numbers.append(receipt.receipt_number)
    sequences = sorted(parse_receipt_number(n)[2] for n in numbers)
    assert sequences == list(range(1, count + 1))


@pytest.mark.asyncio
async def test_concurrent_receipt_requests_for_one_payment(orchestrator, store, add_order):
    await add_order(cost=Decimal("5000"), currency="XOF", status=OrderStatus.PAID)
    now = utcnow()
    await DocumentPaymentRepository(store).add(
        Payment(
            payment_id="pay-1",
            order_id="O1",
            amount=Decimal("5000"),
            currency="XOF",
            gateway="mtn",
            transaction_id="MTNABCDEFGHIJ",
            status=PaymentStatus.SUCCEEDED,
            created_at=now,
            updated_at=now,
        )
    )

    results = await asyncio.gather(
        *(orchestrator.generate_receipt_for_payment("pay-1") for _ in range(4))
    )

    assert {r.receipt_number for r in results} == {"BJ-2026-000001"}
    assert len({r.receipt_id for r in results}) == 1
