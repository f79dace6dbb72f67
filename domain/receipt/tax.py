"""
Tax arithmetic for tax-inclusive (TTC) prices.

Every rounding point uses ROUND_HALF_UP to the cent, applied step by step
rather than deferred, so that recomputing a receipt always yields the same
figures and total == subtotal + tax holds exactly.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import quantize_money
from domain.payment.entity import MedicationDetail
from domain.receipt.entity import LineItem, TaxBreakdown

GENERIC_MEDICATION_LABEL = "Médicament sur ordonnance / Prescription medication"


def split_inclusive_total(total: Decimal, tax_rate: Decimal, currency: str) -> TaxBreakdown:
    """Extract the tax component from a tax-inclusive total.

    subtotal = total / (1 + rate), tax = total - subtotal.
    """
    if tax_rate < 0:
        raise DomainValidationException(f"Tax rate must not be negative: {tax_rate}", field="tax_rate")
    total = quantize_money(total)
    subtotal = quantize_money(total / (Decimal(1) + tax_rate))
    tax = quantize_money(total - subtotal)
    return TaxBreakdown(subtotal=subtotal, tax=tax, total=total, currency=currency)


def convert_amount(amount: Decimal, rate: Decimal) -> Decimal:
    return quantize_money(amount * rate)


def build_line_items(subtotal: Decimal, medication: Optional[MedicationDetail]) -> tuple[LineItem, ...]:
    """One line for the known medication, otherwise a generic prescription line."""
    if medication is not None:
        return (
            LineItem(
                name=medication.name,
                quantity=medication.quantity,
                unit_price=quantize_money(subtotal / medication.quantity),
                total_price=subtotal,
            ),
        )
    return (
        LineItem(
            name=GENERIC_MEDICATION_LABEL,
            quantity=1,
            unit_price=subtotal,
            total_price=subtotal,
        ),
    )
