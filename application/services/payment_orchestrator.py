"""
Application service orchestrating prescription payments.

Depends only on repository interfaces, the gateway strategy port and the
receipt/audit services; concrete adapters are injected by the composition
root (infrastructure.container).

Ordering guarantees:
- the order is claimed (awaiting_payment -> payment_processing) before any
  gateway call, so two concurrent attempts can never both be charged;
- on success the Payment is persisted before the order becomes paid, so a
  crash in between leaves a recoverable state for `reconcile`.
"""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional, Union

from pydantic import ValidationError

from application.dtos.payments import ProcessPaymentRequest, ProcessPaymentResult, ReconciliationReport
from application.dtos.receipts import ReceiptResult
from application.ports.payment_gateway import GatewayStrategy, WebhookSignatureVerifier
from application.services.audit_log import AuditLog
from application.services.receipt_service import ReceiptGenerator
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    GatewayDeclineException,
    GatewayTimeoutException,
    OrderNotFoundException,
    PaymentNotFoundException,
    PaymentValidationException,
    WebhookReconciliationException,
)
from domain.common.values import utcnow
from domain.payment.entity import AuditLogEntry, Order, OrderStatus, Payment, PaymentStatus
from domain.payment.repository import OrderRepository, PaymentRepository
from domain.receipt.entity import CustomerInfo, PharmacyInfo, Receipt
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

# Order states a succeeded payment may advance to paid
PAYABLE_STATUSES = (OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_PROCESSING)


def _describe_error(err: Mapping[str, Any]) -> str:
    field = ".".join(str(part) for part in err.get("loc", ())) or "request"
    return f"Invalid {field}: {err.get('msg')}"


class PaymentOrchestrator:
    def __init__(
        self,
        *,
        orders: OrderRepository,
        payments: PaymentRepository,
        gateways: Mapping[str, GatewayStrategy],
        receipts: ReceiptGenerator,
        audit: AuditLog,
        verifier: Optional[WebhookSignatureVerifier] = None,
        settings: Optional[PaymentSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.orders = orders
        self.payments = payments
        self.gateways = dict(gateways)
        self.receipts = receipts
        self.audit = audit
        self.verifier = verifier
        self.settings = settings or payment_settings
        self.clock = clock

    # Payment processing
    async def process_payment(
        self,
        request: Union[ProcessPaymentRequest, Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> ProcessPaymentResult:
        if not isinstance(request, ProcessPaymentRequest):
            request = await self._parse_request(request, user_id)

        logger.info(
            "payment_process_request",
            order_id=request.order_id,
            gateway=request.gateway,
            amount=str(request.amount) if request.amount is not None else None,
            currency=request.currency,
        )

        try:
            order = await self._check_order_eligibility(request.order_id)
            strategy = self._check_payment_input(request, order)
            await self._claim_order(order)
        except PaymentValidationException as exc:
            await self.audit.record(
                "payment_rejected",
                order_id=request.order_id,
                error_details=exc.message,
                user_id=user_id,
            )
            logger.info("payment_rejected", order_id=request.order_id, errors=exc.errors)
            raise

        payment_id = uuid.uuid4().hex
        timeout = self.settings.gateway_timeout_seconds
        try:
            authorization = await asyncio.wait_for(
                strategy.authorize(order.order_id, request.amount, request.currency, request.payment_data),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            exc = GatewayTimeoutException(gateway=strategy.name, timeout=timeout)
            await self._fail_attempt(order, payment_id, exc.message, user_id)
            raise exc
        except GatewayDeclineException as exc:
            await self._fail_attempt(order, payment_id, exc.message, user_id)
            raise
        except Exception as exc:
            await self._fail_attempt(order, payment_id, f"Gateway error: {exc}", user_id)
            raise

        now = self.clock()
        payment = Payment(
            payment_id=payment_id,
            order_id=order.order_id,
            amount=request.amount,
            currency=request.currency,
            gateway=strategy.name,
            transaction_id=authorization.transaction_id,
            status=authorization.status,
            gateway_response=authorization.gateway_response,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        await self.payments.add(payment)

        if payment.status == PaymentStatus.SUCCEEDED:
            await self._settle(payment, order)
        else:
            # Outcome arrives later by webhook; the order stays claimed until then
            logger.info("payment_pending", payment_id=payment_id, order_id=order.order_id)

        await self.audit.record(
            "payment_processed",
            payment_id=payment_id,
            order_id=order.order_id,
            gateway_response=authorization.gateway_response,
            user_id=user_id,
        )
        logger.info(
            "payment_processed",
            payment_id=payment_id,
            order_id=order.order_id,
            gateway=strategy.name,
            transaction_id=authorization.transaction_id,
            status=payment.status.value,
        )
        return ProcessPaymentResult(
            payment_id=payment_id,
            transaction_id=authorization.transaction_id,
            status=payment.status,
            gateway_response=authorization.gateway_response,
        )

    async def _parse_request(self, raw: Mapping[str, Any], user_id: Optional[str]) -> ProcessPaymentRequest:
        try:
            return ProcessPaymentRequest.model_validate(dict(raw))
        except ValidationError as exc:
            errors = [_describe_error(err) for err in exc.errors()]
            failure = PaymentValidationException("Payment validation failed", errors)
        order_id = raw.get("order_id")
        order_id = str(order_id) if order_id is not None else None
        await self.audit.record(
            "payment_rejected",
            order_id=order_id,
            error_details=failure.message,
            user_id=user_id,
        )
        logger.info("payment_rejected", order_id=order_id, errors=failure.errors)
        raise failure

    async def _check_order_eligibility(self, order_id: Optional[str]) -> Order:
        order = await self.orders.get(order_id) if order_id else None
        if order is None:
            raise PaymentValidationException("Order validation failed", ["Order not found"])

        errors: list[str] = []
        if order.status != OrderStatus.AWAITING_PAYMENT:
            errors.append(f"Order is not ready for payment. Current status: {order.status.value}")
        if await self.payments.find_succeeded_for_order(order.order_id) is not None:
            errors.append("Order has already been paid")
        if not order.has_valid_cost:
            errors.append("Order cost is not set or invalid")
        if errors:
            raise PaymentValidationException("Order validation failed", errors)
        return order

    def _check_payment_input(self, request: ProcessPaymentRequest, order: Order) -> GatewayStrategy:
        errors: list[str] = []
        if not request.order_id:
            errors.append("Order ID is required")
        amount_ok = request.amount is not None and request.amount.is_finite() and request.amount > 0
        if not amount_ok:
            errors.append("Valid amount is required")
        if not request.currency:
            errors.append("Currency is required")
        if amount_ok and order.cost is not None and request.amount != order.cost:
            errors.append(f"Payment amount {request.amount} does not match order cost {order.cost}")
        if request.currency and request.currency != order.currency:
            errors.append(f"Payment currency {request.currency} does not match order currency {order.currency}")

        strategy = self.gateways.get(request.gateway or "")
        if strategy is None:
            errors.append(f"Unsupported payment gateway: {request.gateway}")
        else:
            errors.extend(strategy.validate(request.payment_data))

        if errors:
            raise PaymentValidationException("Payment validation failed", errors)
        return strategy

    async def _claim_order(self, order: Order) -> None:
        now = self.clock()
        claimed = await self.orders.transition(
            order.order_id,
            [OrderStatus.AWAITING_PAYMENT],
            OrderStatus.PAYMENT_PROCESSING,
            now=now,
            claimed_at=now,
        )
        if not claimed:
            raise PaymentValidationException("Order validation failed", ["Order payment already in progress"])

    async def _release_claim(self, order_id: str) -> bool:
        return await self.orders.transition(
            order_id,
            [OrderStatus.PAYMENT_PROCESSING],
            OrderStatus.AWAITING_PAYMENT,
            now=self.clock(),
        )

    async def _fail_attempt(self, order: Order, payment_id: str, message: str, user_id: Optional[str]) -> None:
        await self._release_claim(order.order_id)
        await self.audit.record(
            "payment_failed",
            payment_id=payment_id,
            order_id=order.order_id,
            error_details=message,
            user_id=user_id,
        )
        logger.warning("payment_failed", payment_id=payment_id, order_id=order.order_id, error=message)

    async def _settle(self, payment: Payment, order: Optional[Order] = None) -> Optional[ReceiptResult]:
        """Advance the order to paid and make sure the payment has its receipt."""
        advanced = await self.orders.transition(
            payment.order_id,
            PAYABLE_STATUSES,
            OrderStatus.PAID,
            now=self.clock(),
        )
        if not advanced:
            logger.info("order_not_advanced", order_id=payment.order_id, payment_id=payment.payment_id)

        if order is None:
            order = await self.orders.get(payment.order_id)
        try:
            return await self.receipts.generate(payment, order)
        except Exception:
            # The payment stands; reconcile() retries missing receipts
            logger.exception(
                "receipt_generation_failed",
                payment_id=payment.payment_id,
                order_id=payment.order_id,
            )
            return None

    # Webhooks
    async def process_webhook(
        self,
        gateway: str,
        payload: dict[str, Any],
        signature: Optional[str] = None,
    ) -> None:
        gateway = (gateway or "").strip().lower()
        strategy = self.gateways.get(gateway)
        if strategy is None:
            await self._reject_webhook(
                gateway,
                f"Unsupported webhook gateway: {gateway}",
                PaymentCode.UNSUPPORTED_GATEWAY,
            )
        if self.settings.webhook.require_signature:
            if not signature or (self.verifier is not None and not self.verifier.verify(gateway, payload, signature)):
                await self._reject_webhook(gateway, "Invalid webhook signature", PaymentCode.SIGNATURE_ERROR)

        notice = strategy.parse_webhook(payload)
        if notice is None:
            await self.audit.record("webhook_ignored", gateway_response=payload)
            logger.info("webhook_ignored", gateway=gateway)
            return

        payment = await self.payments.get_by_transaction(strategy.name, notice.transaction_id)
        if payment is None:
            await self.audit.record(
                "webhook_unmatched",
                gateway_response=payload,
                error_details=f"Payment not found for transaction {notice.transaction_id}",
            )
            raise PaymentNotFoundException(
                notice.transaction_id,
                details={"gateway": gateway, "transaction_id": notice.transaction_id},
            )

        if payment.status == notice.status:
            logger.info("webhook_replayed", payment_id=payment.payment_id, status=notice.status.value)
        elif not payment.can_transition_to(notice.status):
            await self._webhook_conflict(
                payment,
                payload,
                notice.status,
                f"Ignored {notice.status.value} notice for a {payment.status.value} payment",
            )
            return
        else:
            if notice.status == PaymentStatus.SUCCEEDED:
                other = await self.payments.find_succeeded_for_order(payment.order_id)
                if other is not None and other.payment_id != payment.payment_id:
                    await self._webhook_conflict(
                        payment,
                        payload,
                        notice.status,
                        f"Order {payment.order_id} already paid by payment {other.payment_id}",
                    )
                    return
            applied = await self.payments.update_status(
                payment.payment_id,
                payment.status,
                notice.status,
                now=self.clock(),
            )
            if not applied:
                await self._webhook_conflict(payment, payload, notice.status, "Payment status changed concurrently")
                return
            payment.status = notice.status
            if notice.status == PaymentStatus.FAILED:
                await self._release_claim(payment.order_id)

        if payment.status == PaymentStatus.SUCCEEDED:
            # Idempotent, so replays also repair a half-finished settlement
            await self._settle(payment)

        await self.audit.record(
            f"webhook_{notice.status.value}",
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            gateway_response=payload,
        )
        logger.info(
            "webhook_processed",
            gateway=gateway,
            payment_id=payment.payment_id,
            status=notice.status.value,
            event_type=notice.event_type,
        )

    async def _webhook_conflict(
        self,
        payment: Payment,
        payload: dict[str, Any],
        notice_status: PaymentStatus,
        reason: str,
    ) -> None:
        await self.audit.record(
            "webhook_conflict",
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            gateway_response=payload,
            error_details=reason,
        )
        logger.warning(
            "webhook_conflict",
            payment_id=payment.payment_id,
            notice_status=notice_status.value,
            reason=reason,
        )

    async def _reject_webhook(self, gateway: str, message: str, code: int) -> None:
        await self.audit.record("webhook_rejected", error_details=message)
        logger.warning("webhook_rejected", gateway=gateway, reason=message)
        raise WebhookReconciliationException(message, gateway=gateway, code=code)

    # Queries
    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        return await self.payments.get(payment_id)

    async def get_payments_for_order(self, order_id: str) -> List[Payment]:
        return await self.payments.list_by_order(order_id)

    async def get_payment_audit_logs(
        self,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        return await self.audit.query(payment_id=payment_id, order_id=order_id)

    async def generate_receipt_for_payment(
        self,
        payment_id: str,
        pharmacy: Optional[PharmacyInfo] = None,
        customer: Optional[CustomerInfo] = None,
    ) -> ReceiptResult:
        payment = await self.payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundException(payment_id)
        if payment.status != PaymentStatus.SUCCEEDED:
            raise PaymentValidationException(
                "Receipt generation failed",
                [f"Payment is not succeeded. Current status: {payment.status.value}"],
            )
        order = await self.orders.get(payment.order_id)
        if order is None:
            raise OrderNotFoundException(payment.order_id)
        return await self.receipts.generate(payment, order, pharmacy=pharmacy, customer=customer)

    async def get_receipt_by_payment_id(self, payment_id: str) -> Optional[Receipt]:
        return await self.receipts.get_receipt_by_payment_id(payment_id)

    async def get_receipt_pdf(self, receipt_id: str) -> Optional[bytes]:
        return await self.receipts.get_receipt_pdf(receipt_id)

    # Recovery
    async def reconcile(self, now: Optional[datetime] = None) -> ReconciliationReport:
        """Repair states left behind by crashes between orchestration steps."""
        now = now or self.clock()
        ttl = timedelta(seconds=self.settings.claim_ttl_seconds)
        report = ReconciliationReport()

        for order in await self.orders.list_by_status(OrderStatus.PAYMENT_PROCESSING):
            succeeded = await self.payments.find_succeeded_for_order(order.order_id)
            if succeeded is not None:
                if await self.orders.transition(
                    order.order_id, [OrderStatus.PAYMENT_PROCESSING], OrderStatus.PAID, now=now
                ):
                    report.orders_advanced.append(order.order_id)
                continue
            payments = await self.payments.list_by_order(order.order_id)
            if any(p.status == PaymentStatus.PENDING for p in payments):
                # Held by an authorization awaiting its webhook
                logger.info("claim_held_by_pending_payment", order_id=order.order_id)
                continue
            if order.claimed_at is None or now - order.claimed_at > ttl:
                if await self._release_claim(order.order_id):
                    report.claims_released.append(order.order_id)

        for payment in await self.payments.list_succeeded_without_receipt():
            order = await self.orders.get(payment.order_id)
            try:
                result = await self.receipts.generate(payment, order)
            except Exception:
                logger.exception("receipt_generation_failed", payment_id=payment.payment_id)
                continue
            report.receipts_generated.append(result.receipt_number)

        logger.info(
            "payments_reconciled",
            orders_advanced=len(report.orders_advanced),
            claims_released=len(report.claims_released),
            receipts_generated=len(report.receipts_generated),
        )
        return report
