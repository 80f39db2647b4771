"""Payment entity and Cassandra schema.

A payment is created when the student starts a mobile-money push and is
finalized by the gateway callback. ``gateway_reference`` is both the primary
key and the idempotency key of callback processing.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from elearning.utils import ensure_utc_aware


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"  # Push accepted by the gateway
    COMPLETED = "completed"
    FAILED = "failed"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED}
    ),
    PaymentStatus.PROCESSING: frozenset(
        {PaymentStatus.COMPLETED, PaymentStatus.FAILED}
    ),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

# Gateway result codes with a fixed customer-facing reason
FAILURE_REASONS: dict[int, str] = {
    1032: "Cancelled by user",
    1037: "No response from user",
}

RECEIPT_NUMBER_KEYS = ("MpesaReceiptNumber", "receiptNumber", "receipt_number")


def failure_reason_for(result_code: int, result_desc: str | None) -> str:
    if result_code in FAILURE_REASONS:
        return FAILURE_REASONS[result_code]
    return result_desc or f"Payment failed (code {result_code})"


def extract_receipt_number(metadata: dict[str, Any]) -> str | None:
    """Receipt number from callback metadata.

    Accepts a flat object as well as the gateway's raw
    ``{"Item": [{"Name": ..., "Value": ...}]}`` list.
    """
    for key in RECEIPT_NUMBER_KEYS:
        if metadata.get(key):
            return str(metadata[key])

    items = metadata.get("Item")
    if isinstance(items, list):
        for item in items:
            if isinstance(item, dict) and item.get("Name") in RECEIPT_NUMBER_KEYS:
                value = item.get("Value")
                return str(value) if value is not None else None
    return None


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PAYMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments (
    gateway_reference TEXT PRIMARY KEY,
    payment_id UUID,
    student_id UUID,
    course_id UUID,
    branch_id UUID,
    amount DECIMAL,
    status TEXT,
    callback_received BOOLEAN,
    failure_reason TEXT,
    result_code INT,
    result_desc TEXT,
    receipt_number TEXT,
    receipt_metadata TEXT,
    version BIGINT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PAYMENTS_TABLES_CQL = [
    PAYMENTS_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class Payment:
    student_id: UUID
    course_id: UUID
    amount: Decimal
    gateway_reference: str
    branch_id: UUID | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_id: UUID = field(default_factory=uuid4)
    callback_received: bool = False
    failure_reason: str | None = None
    result_code: int | None = None
    result_desc: str | None = None
    receipt_number: str | None = None
    receipt_metadata: dict[str, Any] = field(default_factory=dict)
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_terminal(self) -> bool:
        return not PAYMENT_TRANSITIONS[self.status]

    def can_become(self, status: PaymentStatus) -> bool:
        return status in PAYMENT_TRANSITIONS[self.status]

    def evolve(self, **changes: Any) -> "Payment":
        return replace(
            self, **changes, version=self.version + 1, updated_at=datetime.now(UTC)
        )

    @classmethod
    def from_row(cls, row: Any) -> "Payment":
        return cls(
            gateway_reference=row.gateway_reference,
            payment_id=row.payment_id,
            student_id=row.student_id,
            course_id=row.course_id,
            branch_id=row.branch_id,
            amount=row.amount or Decimal(0),
            status=PaymentStatus(row.status),
            callback_received=bool(row.callback_received),
            failure_reason=row.failure_reason,
            result_code=row.result_code,
            result_desc=row.result_desc,
            receipt_number=row.receipt_number,
            receipt_metadata=json.loads(row.receipt_metadata)
            if row.receipt_metadata
            else {},
            version=row.version or 1,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def to_row(self) -> list[Any]:
        """Column values in ``payments`` insert order."""
        return [
            self.gateway_reference,
            self.payment_id,
            self.student_id,
            self.course_id,
            self.branch_id,
            self.amount,
            self.status.value,
            self.callback_received,
            self.failure_reason,
            self.result_code,
            self.result_desc,
            self.receipt_number,
            json.dumps(self.receipt_metadata, default=str),
            self.version,
            self.created_at,
            self.updated_at,
        ]
