"""Business exceptions shared by the domain, application and infrastructure layers.

Every error raised by the payment core derives from BusinessException so the
(out of scope) routing layer can map `code` to a transport status without
inspecting messages. Messages are safe to show to end users.
"""
from __future__ import annotations

from typing import Optional, Sequence

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """Base business exception"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
        )


class PaymentValidationException(BusinessException):
    """Order not eligible or payment input incomplete; lists every violation."""

    def __init__(self, context: str, errors: Sequence[str]):
        errors = list(errors)
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"{context}: {', '.join(errors)}",
            error_type="PaymentValidationError",
            details={"errors": errors},
            message_key="payments.validation.failed",
        )
        self.errors = errors


class GatewayDeclineException(BusinessException):
    def __init__(self, message: str, *, gateway: str, decline_code: str | None = None):
        super().__init__(
            code=PaymentCode.DECLINED,
            message=message,
            error_type="GatewayDeclineError",
            details={"gateway": gateway, "decline_code": decline_code},
            message_key="payments.gateway.declined",
        )
        self.gateway = gateway


class GatewayTimeoutException(GatewayDeclineException):
    def __init__(self, *, gateway: str, timeout: float):
        super().__init__(
            f"Payment gateway {gateway} did not respond within {timeout:g}s",
            gateway=gateway,
            decline_code="timeout",
        )
        self.code = PaymentCode.TIMEOUT
        self.error_type = "GatewayTimeoutError"
        self.message_key = "payments.gateway.timeout"


class WebhookReconciliationException(BusinessException):
    def __init__(self, message: str, *, gateway: str, code: int = PaymentCode.SIGNATURE_ERROR):
        super().__init__(
            code=code,
            message=message,
            error_type="WebhookReconciliationError",
            details={"gateway": gateway},
            message_key="payments.webhook.rejected",
        )


class ResourceNotFoundException(BusinessException):
    resource = "Resource"

    def __init__(self, identifier: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"{self.resource} not found: {identifier}",
            error_type=f"{self.resource.replace(' ', '')}NotFound",
            details=details or {"id": identifier},
            message_key="resource.not_found",
        )


class OrderNotFoundException(ResourceNotFoundException):
    resource = "Order"


class PaymentNotFoundException(ResourceNotFoundException):
    resource = "Payment"


class ReceiptNotFoundException(ResourceNotFoundException):
    resource = "Receipt"


class DocumentNotFoundException(ResourceNotFoundException):
    resource = "Document"

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id}", details={"collection": collection, "id": doc_id})


class ReceiptGenerationInProgressException(BusinessException):
    """Another caller holds the receipt reservation of this payment."""

    def __init__(self, payment_id: str):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=f"Receipt generation already in progress for payment {payment_id}",
            error_type="ReceiptGenerationInProgress",
            details={"payment_id": payment_id},
            message_key="receipts.generation.in_progress",
        )
