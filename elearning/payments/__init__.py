"""Payment reconciliation: idempotent gateway callback handling."""

from .models import PAYMENTS_TABLES_CQL, Payment, PaymentStatus
from .service import CallbackOutcome, PaymentService


__all__ = [
    "PAYMENTS_TABLES_CQL",
    "CallbackOutcome",
    "Payment",
    "PaymentService",
    "PaymentStatus",
]
