"""Document store collection names shared by the repositories."""

ORDERS = "prescriptionOrders"
PAYMENTS = "payments"
RECEIPTS = "receipts"
AUDIT_LOGS = "paymentAuditLogs"
RECEIPT_COUNTERS = "receiptCounters"
