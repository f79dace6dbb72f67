"""
Receipt generation for succeeded payments.

Builds the tax-compliant ReceiptDetails (Benin TVA, bilingual legal text),
allocates the receipt number from an atomic per-year counter, persists the
receipt and links it back to the payment. Document bytes are never stored:
they are rendered again from the details on every request.
"""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from application.dtos.receipts import ReceiptResult
from application.ports.receipt_renderer import ReceiptRenderer
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    DomainValidationException,
    ReceiptGenerationInProgressException,
    ReceiptNotFoundException,
)
from domain.common.values import utcnow
from domain.payment.entity import Order, Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from domain.receipt.entity import CustomerInfo, PharmacyInfo, Receipt, ReceiptDetails
from domain.receipt.numbering import counter_key, format_receipt_number
from domain.receipt.repository import ReceiptRepository
from domain.receipt.tax import build_line_items, convert_amount, split_inclusive_total


logger = get_logger(__name__)


LEGAL_TEXT_FRENCH = (
    "Facture normalisée conforme aux dispositions du Code Général des Impôts du Bénin.\n"
    "TVA comprise au taux de {rate}%.\n"
    "Pharmacie agréée par l'Ordre National des Pharmaciens du Bénin.\n"
    "Médicaments délivrés sur présentation d'une ordonnance médicale valide.\n"
    "Conservation : tenir hors de portée des enfants, dans un endroit sec et frais.\n"
    "En cas d'effet indésirable, consulter immédiatement un professionnel de santé."
)

LEGAL_TEXT_ENGLISH = (
    "Standardized invoice compliant with Benin General Tax Code provisions.\n"
    "VAT included at {rate}% rate.\n"
    "Pharmacy licensed by the National Order of Pharmacists of Benin.\n"
    "Medications dispensed upon presentation of valid medical prescription.\n"
    "Storage: keep out of reach of children, in a dry and cool place.\n"
    "In case of adverse effects, consult a healthcare professional immediately."
)


def _percent(rate: Decimal) -> str:
    return str((rate * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class ReceiptGenerator:
    # How long a caller that lost the reservation waits for the winner's receipt
    WAIT_ATTEMPTS = 50
    WAIT_INTERVAL = 0.02

    def __init__(
        self,
        receipts: ReceiptRepository,
        payments: PaymentRepository,
        renderer: ReceiptRenderer,
        settings: Optional[PaymentSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.receipts = receipts
        self.payments = payments
        self.renderer = renderer
        self.settings = settings or payment_settings
        self.clock = clock

    def default_pharmacy(self) -> PharmacyInfo:
        p = self.settings.pharmacy
        return PharmacyInfo(
            name=p.name,
            address=p.address,
            phone=p.phone,
            email=p.email,
            license_number=p.license_number,
            tax_id=p.tax_id,
        )

    def build_details(
        self,
        payment: Payment,
        order: Optional[Order],
        *,
        receipt_number: str,
        issue_date: datetime,
        pharmacy: PharmacyInfo,
        customer: Optional[CustomerInfo] = None,
    ) -> ReceiptDetails:
        """Pure computation of everything printed on the receipt."""
        cfg = self.settings.receipt
        rate = cfg.tax_rate
        breakdown = split_inclusive_total(payment.amount, rate, payment.currency)

        exchange_rate = None
        converted = None
        if payment.currency != cfg.settlement_currency:
            exchange_rate = cfg.exchange_rates.get(payment.currency)
            if exchange_rate is not None:
                converted = split_inclusive_total(
                    convert_amount(breakdown.total, exchange_rate),
                    rate,
                    cfg.settlement_currency,
                )

        medication = order.medication if order is not None else None
        return ReceiptDetails(
            receipt_number=receipt_number,
            issue_date=issue_date,
            tax_rate=rate,
            subtotal_amount=breakdown.subtotal,
            tax_amount=breakdown.tax,
            total_amount=breakdown.total,
            currency=payment.currency,
            gateway=payment.gateway.value,
            transaction_id=payment.transaction_id,
            pharmacy=pharmacy,
            customer=customer,
            line_items=build_line_items(breakdown.subtotal, medication),
            legal_text_french=LEGAL_TEXT_FRENCH.format(rate=_percent(rate)),
            legal_text_english=LEGAL_TEXT_ENGLISH.format(rate=_percent(rate)),
            exchange_rate=exchange_rate,
            converted=converted,
        )

    def _result(self, receipt: Receipt) -> ReceiptResult:
        return ReceiptResult(
            receipt_id=receipt.receipt_id,
            receipt_number=receipt.receipt_number,
            document=self.renderer.render(receipt.details),
            media_type=self.renderer.media_type,
            details=receipt.details,
        )

    async def generate(
        self,
        payment: Payment,
        order: Optional[Order],
        pharmacy: Optional[PharmacyInfo] = None,
        customer: Optional[CustomerInfo] = None,
    ) -> ReceiptResult:
        """Issue the receipt of a succeeded payment, or return the one it already has."""
        if payment.status != PaymentStatus.SUCCEEDED:
            raise DomainValidationException(
                f"Receipts are only issued for succeeded payments: {payment.payment_id}",
                field="status",
            )

        existing = await self.receipts.get_by_payment_id(payment.payment_id)
        if existing is not None:
            logger.info("receipt_reused", payment_id=payment.payment_id, receipt_number=existing.receipt_number)
            return self._result(existing)

        now = self.clock()
        receipt_id = uuid.uuid4().hex
        if not await self.payments.claim_receipt(payment.payment_id, receipt_id, now=now):
            stored = await self._wait_for_receipt(payment.payment_id)
            if stored is not None:
                return self._result(stored)
            await self._take_over_stale_claim(payment.payment_id, receipt_id, now)

        cfg = self.settings.receipt
        sequence = await self.receipts.next_sequence(counter_key(cfg.number_prefix, now.year))
        receipt_number = format_receipt_number(cfg.number_prefix, now.year, sequence)

        details = self.build_details(
            payment,
            order,
            receipt_number=receipt_number,
            issue_date=now,
            pharmacy=pharmacy or self.default_pharmacy(),
            customer=customer,
        )
        receipt = Receipt(
            receipt_id=receipt_id,
            receipt_number=receipt_number,
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            gateway=payment.gateway.value,
            details=details,
            created_at=now,
        )
        # Persisted before rendering so a renderer failure never strands the number
        await self.receipts.add(receipt)
        await self.payments.attach_receipt(
            payment.payment_id,
            receipt_id=receipt_id,
            receipt_number=receipt_number,
            receipt_details=details.to_document(),
            now=now,
        )
        logger.info(
            "receipt_generated",
            receipt_id=receipt_id,
            receipt_number=receipt_number,
            payment_id=payment.payment_id,
            order_id=payment.order_id,
        )
        return self._result(receipt)

    async def _wait_for_receipt(self, payment_id: str) -> Optional[Receipt]:
        for _ in range(self.WAIT_ATTEMPTS):
            receipt = await self.receipts.get_by_payment_id(payment_id)
            if receipt is not None:
                return receipt
            await asyncio.sleep(self.WAIT_INTERVAL)
        return None

    async def _take_over_stale_claim(self, payment_id: str, receipt_id: str, now: datetime) -> None:
        """Replace a reservation whose holder never finished (e.g. crashed mid-way)."""
        current = await self.payments.get(payment_id)
        if current is None:
            raise ReceiptNotFoundException(payment_id)
        lease = timedelta(seconds=self.settings.claim_ttl_seconds)
        claimed_at = current.receipt_claimed_at
        if claimed_at is not None and now - claimed_at <= lease:
            raise ReceiptGenerationInProgressException(payment_id)
        if not await self.payments.claim_receipt(payment_id, receipt_id, now=now, expected=current.receipt_id):
            raise ReceiptGenerationInProgressException(payment_id)
        logger.warning("receipt_claim_taken_over", payment_id=payment_id, stale_receipt_id=current.receipt_id)

    async def get_receipt(self, receipt_id: str) -> Optional[Receipt]:
        return await self.receipts.get(receipt_id)

    async def get_receipt_by_payment_id(self, payment_id: str) -> Optional[Receipt]:
        return await self.receipts.get_by_payment_id(payment_id)

    async def get_receipt_pdf(self, receipt_id: str) -> Optional[bytes]:
        receipt = await self.receipts.get(receipt_id)
        if receipt is None:
            return None
        return self.renderer.render(receipt.details)
