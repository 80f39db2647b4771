"""Enrollment store: persisted enrollments and their lifecycle."""

from .models import (
    ENROLLMENTS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    EnrollmentType,
    can_transition,
)


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "EnrollmentType",
    "can_transition",
]
