"""Pydantic schemas for enrollment endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from elearning.core.schemas import ApiModel

from .models import Enrollment, EnrollmentStatus, EnrollmentType


class EnrollRequest(ApiModel):
    """Free-path enrollment request."""

    course_id: UUID


class TransitionRequest(ApiModel):
    status: EnrollmentStatus
    reason: str | None = Field(default=None, max_length=500)


class EnrollmentResponse(ApiModel):
    enrollment_id: UUID
    student_id: UUID
    course_id: UUID
    branch_id: UUID | None = None
    status: EnrollmentStatus
    enrollment_type: EnrollmentType
    payment_reference: str | None = None
    progress: int = Field(ge=0, le=100)
    enrolled_at: datetime
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    drop_reason: str | None = None
    certificate_issued_at: datetime | None = None
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        return cls.model_validate(entity)


class EnrollmentListResponse(ApiModel):
    items: list[EnrollmentResponse]
    total: int


class DispatchResponse(ApiModel):
    enrollment_id: UUID
    queued: bool
