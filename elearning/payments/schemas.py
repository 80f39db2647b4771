"""Pydantic schemas for payment endpoints and the gateway webhook."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field

from elearning.core.schemas import ApiModel

from .models import Payment, PaymentStatus


class PaymentCallbackRequest(ApiModel):
    """Gateway callback body, normalized across providers."""

    result_code: int
    result_desc: str = ""
    receipt_metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentCallbackResponse(ApiModel):
    success: bool = True


class InitiatePaymentRequest(ApiModel):
    course_id: UUID
    gateway_reference: str | None = Field(default=None, min_length=1, max_length=100)


class PaymentResponse(ApiModel):
    payment_id: UUID
    gateway_reference: str
    student_id: UUID
    course_id: UUID
    branch_id: UUID | None = None
    amount: Decimal
    status: PaymentStatus
    callback_received: bool
    failure_reason: str | None = None
    receipt_number: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: Payment) -> "PaymentResponse":
        return cls.model_validate(entity)
