"""Payment recovery Celery tasks"""
from __future__ import annotations

import asyncio

from celery import shared_task

from ..utils.base_task import BaseTask
from application.dtos.payments import ReconciliationReport
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


async def _reconcile() -> dict:
    from infrastructure.container import build_payment_orchestrator
    from infrastructure.document_store import get_document_store

    if settings.document_store.backend == "memory":
        # A fresh in-memory store per run has nothing to repair
        logger.warning("reconcile_skipped", backend="memory", hint="set DOCUMENT_STORE__BACKEND=sqlalchemy")
        return ReconciliationReport().model_dump()

    store = get_document_store()
    try:
        orchestrator = build_payment_orchestrator(store)
        report = await orchestrator.reconcile()
    finally:
        await store.aclose()
    return report.model_dump()


@shared_task(name="payments.reconcile", bind=True, base=BaseTask)
def reconcile_payments(self) -> dict:
    """Advance orders whose payment succeeded, release stale claims, issue missing receipts.

    Requires the sqlalchemy document store; skipped with a warning on the
    in-memory backend. Not retried: the next scheduled run picks up whatever
    this one missed.
    """
    # asyncio.run per task keeps each run on its own event loop
    result = asyncio.run(_reconcile())
    logger.info("reconcile_task_done", task_id=self.request.id, **{k: len(v) for k, v in result.items()})
    return result
