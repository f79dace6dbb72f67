"""
Composition root wiring the payment core.

Everything is injectable so tests can swap the store, clock, latency or
gateways without touching module globals.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Mapping, Optional

from application.ports.document_store import DocumentStore
from application.ports.payment_gateway import GatewayStrategy, WebhookSignatureVerifier
from application.ports.receipt_renderer import ReceiptRenderer
from application.services.audit_log import AuditLog
from application.services.payment_orchestrator import PaymentOrchestrator
from application.services.receipt_service import ReceiptGenerator
from core.settings import PaymentSettings, payment_settings
from domain.common.values import utcnow
from infrastructure.document_store import get_document_store
from infrastructure.external.payments import build_gateway_registry
from infrastructure.external.payments.signature import SignaturePresenceVerifier
from infrastructure.receipts import FpdfReceiptRenderer
from infrastructure.repositories.payment_repository import (
    DocumentAuditLogRepository,
    DocumentOrderRepository,
    DocumentPaymentRepository,
)
from infrastructure.repositories.receipt_repository import DocumentReceiptRepository


def build_payment_orchestrator(
    store: Optional[DocumentStore] = None,
    *,
    settings: Optional[PaymentSettings] = None,
    gateways: Optional[Mapping[str, GatewayStrategy]] = None,
    renderer: Optional[ReceiptRenderer] = None,
    verifier: Optional[WebhookSignatureVerifier] = None,
    clock: Callable[[], datetime] = utcnow,
) -> PaymentOrchestrator:
    cfg = settings or payment_settings
    store = store if store is not None else get_document_store()

    payments = DocumentPaymentRepository(store)
    receipts = ReceiptGenerator(
        receipts=DocumentReceiptRepository(store),
        payments=payments,
        renderer=renderer or FpdfReceiptRenderer(),
        settings=cfg,
        clock=clock,
    )
    return PaymentOrchestrator(
        orders=DocumentOrderRepository(store),
        payments=payments,
        gateways=gateways if gateways is not None else build_gateway_registry(cfg),
        receipts=receipts,
        audit=AuditLog(DocumentAuditLogRepository(store), clock=clock),
        verifier=verifier or SignaturePresenceVerifier(),
        settings=cfg,
        clock=clock,
    )
