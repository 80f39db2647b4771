"""Enrollment entity, lifecycle table and Cassandra schema.

An enrollment is a student's participation in one course. Its status moves
through a closed set of states; every change goes through
:func:`can_transition` so illegal edges are rejected in one place.

Tables:
- enrollments: source of truth, keyed by enrollment_id
- enrollment_keys: one row per (student_id, course_id) claimed with a
  lightweight transaction, the uniqueness guard for live enrollments
- enrollments_by_student: lookup for "my enrollments"
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from elearning.utils import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle status."""

    PENDING = "pending"  # Awaiting approval
    ACTIVE = "active"
    APPROVED = "approved"  # Approved by staff, may study
    COMPLETED = "completed"
    DROPPED = "dropped"
    SUSPENDED = "suspended"  # Access revoked for now
    FAILED = "failed"


class EnrollmentType(str, Enum):
    """How the student got into the course."""

    FREE = "free"
    PAID = "paid"
    MANUAL = "manual"  # Created by staff


ALLOWED_TRANSITIONS: dict[EnrollmentStatus, frozenset[EnrollmentStatus]] = {
    EnrollmentStatus.PENDING: frozenset(
        {
            EnrollmentStatus.ACTIVE,
            EnrollmentStatus.APPROVED,
            EnrollmentStatus.DROPPED,
        }
    ),
    EnrollmentStatus.APPROVED: frozenset(
        {
            EnrollmentStatus.ACTIVE,
            EnrollmentStatus.COMPLETED,
            EnrollmentStatus.DROPPED,
        }
    ),
    EnrollmentStatus.ACTIVE: frozenset(
        {
            EnrollmentStatus.COMPLETED,
            EnrollmentStatus.SUSPENDED,
            EnrollmentStatus.DROPPED,
        }
    ),
    EnrollmentStatus.SUSPENDED: frozenset(
        {
            EnrollmentStatus.ACTIVE,
            EnrollmentStatus.DROPPED,
        }
    ),
    EnrollmentStatus.COMPLETED: frozenset(),
    EnrollmentStatus.DROPPED: frozenset(),
    EnrollmentStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Statuses whose progress writes are accepted
PROGRESS_WRITABLE_STATUSES = frozenset(
    {
        EnrollmentStatus.PENDING,
        EnrollmentStatus.ACTIVE,
        EnrollmentStatus.APPROVED,
        EnrollmentStatus.COMPLETED,
    }
)


def can_transition(current: EnrollmentStatus, target: EnrollmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def releases_key(status: EnrollmentStatus) -> bool:
    """Dropped and failed enrollments free the pair for a new enrollment."""
    return status in (EnrollmentStatus.DROPPED, EnrollmentStatus.FAILED)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    enrollment_id UUID PRIMARY KEY,
    student_id UUID,
    course_id UUID,
    branch_id UUID,
    status TEXT,
    enrollment_type TEXT,
    payment_reference TEXT,
    progress INT,
    progress_version BIGINT,
    enrolled_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    completed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    drop_reason TEXT,
    certificate_issued_at TIMESTAMP,
    version BIGINT,
    updated_at TIMESTAMP
)
"""

ENROLLMENT_KEYS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_keys (
    student_id UUID,
    course_id UUID,
    enrollment_id UUID,
    claimed_at TIMESTAMP,
    PRIMARY KEY ((student_id, course_id))
)
"""

ENROLLMENTS_BY_STUDENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_student (
    student_id UUID,
    enrolled_at TIMESTAMP,
    enrollment_id UUID,
    course_id UUID,
    PRIMARY KEY (student_id, enrolled_at, enrollment_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, enrollment_id ASC)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENT_KEYS_TABLE_CQL,
    ENROLLMENTS_BY_STUDENT_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class Enrollment:
    """A student's enrollment in a course.

    ``progress`` mirrors the overall progress of the student's learning
    progress document; ``progress_version`` is the document version it was
    taken from. ``version`` guards conditional updates of this row.
    """

    student_id: UUID
    course_id: UUID
    branch_id: UUID | None = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    enrollment_type: EnrollmentType = EnrollmentType.FREE
    enrollment_id: UUID = field(default_factory=uuid4)
    payment_reference: str | None = None
    progress: int = 0
    progress_version: int = 0
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    drop_reason: str | None = None
    certificate_issued_at: datetime | None = None
    version: int = 1
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    @property
    def accepts_progress(self) -> bool:
        return self.status in PROGRESS_WRITABLE_STATUSES

    def evolve(self, **changes: Any) -> "Enrollment":
        """Copy with changes applied and the version bumped."""
        now = changes.pop("updated_at", None) or datetime.now(UTC)
        return replace(self, **changes, version=self.version + 1, updated_at=now)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create instance from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            student_id=row.student_id,
            course_id=row.course_id,
            branch_id=row.branch_id,
            status=EnrollmentStatus(row.status),
            enrollment_type=EnrollmentType(row.enrollment_type or "free"),
            payment_reference=row.payment_reference,
            progress=row.progress or 0,
            progress_version=row.progress_version or 0,
            enrolled_at=ensure_utc_aware(row.enrolled_at) or datetime.now(UTC),
            last_accessed_at=ensure_utc_aware(row.last_accessed_at),
            completed_at=ensure_utc_aware(row.completed_at),
            dropped_at=ensure_utc_aware(row.dropped_at),
            drop_reason=row.drop_reason,
            certificate_issued_at=ensure_utc_aware(row.certificate_issued_at),
            version=row.version or 1,
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def to_row(self) -> list[Any]:
        """Column values in ``enrollments`` insert order."""
        return [
            self.enrollment_id,
            self.student_id,
            self.course_id,
            self.branch_id,
            self.status.value,
            self.enrollment_type.value,
            self.payment_reference,
            self.progress,
            self.progress_version,
            self.enrolled_at,
            self.last_accessed_at,
            self.completed_at,
            self.dropped_at,
            self.drop_reason,
            self.certificate_issued_at,
            self.version,
            self.updated_at,
        ]

    def __repr__(self) -> str:
        return (
            f"<Enrollment {self.enrollment_id} student={self.student_id} "
            f"course={self.course_id} {self.status.value} {self.progress}%>"
        )
