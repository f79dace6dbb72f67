"""
Append-only audit trail of payment orchestration steps.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional

from core.logging_config import get_logger
from domain.common.values import utcnow
from domain.payment.entity import AuditLogEntry
from domain.payment.repository import AuditLogRepository


logger = get_logger(__name__)


class AuditLog:
    def __init__(self, repository: AuditLogRepository, clock: Callable[[], datetime] = utcnow) -> None:
        self.repository = repository
        self.clock = clock

    async def record(
        self,
        action: str,
        *,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
        gateway_response: Optional[dict[str, Any]] = None,
        error_details: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            audit_id=uuid.uuid4().hex,
            action=action,
            timestamp=self.clock(),
            payment_id=payment_id,
            order_id=order_id,
            gateway_response=gateway_response,
            error_details=error_details,
            user_id=user_id,
        )
        await self.repository.add(entry)
        logger.info(
            "audit_recorded",
            action=action,
            payment_id=payment_id,
            order_id=order_id,
        )
        return entry

    async def query(
        self,
        payment_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        return await self.repository.query(payment_id=payment_id, order_id=order_id)
