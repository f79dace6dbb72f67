"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    DECLINED = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    UNSUPPORTED_GATEWAY = 60005


# Provider webhook outcome -> internal payment status. Outcomes missing from a
# provider's table carry no payment result and are ignored.
WEBHOOK_OUTCOME_TO_STATUS = {
    "stripe": {
        "payment_intent.succeeded": "succeeded",
        "payment_intent.payment_failed": "failed",
    },
    "paypal": {
        "PAYMENT.CAPTURE.COMPLETED": "succeeded",
        "PAYMENT.CAPTURE.DENIED": "failed",
    },
    "mtn": {
        "SUCCESSFUL": "succeeded",
        "FAILED": "failed",
    },
}

# Human readable payment method printed on receipts
PAYMENT_METHOD_LABELS = {
    "stripe": "Carte bancaire / Credit Card",
    "paypal": "PayPal",
    "mtn": "MTN Mobile Money",
}
DEFAULT_PAYMENT_METHOD_LABEL = "Paiement électronique / Electronic Payment"
