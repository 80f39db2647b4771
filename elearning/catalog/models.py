"""Read-only catalog views: courses, modules and quiz attempts.

Courses, modules and quizzes are authored elsewhere; the engine only reads
them. The tables are declared here so development clusters can be bootstrapped
with the same layout the authoring service writes.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from elearning.utils import ensure_utc_aware


class QuizAttemptStatus(str, Enum):
    """Lifecycle of a quiz attempt, as reported by the quiz service."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    SUBMITTED_PENDING_GRADING = "submitted_pending_grading"
    PARTIALLY_GRADED = "partially_graded"
    GRADED = "graded"
    ABANDONED = "abandoned"


# Attempts that count toward unlocking the next module
QUALIFYING_ATTEMPT_STATUSES = frozenset(
    {
        QuizAttemptStatus.SUBMITTED.value,
        QuizAttemptStatus.SUBMITTED_PENDING_GRADING.value,
        QuizAttemptStatus.PARTIALLY_GRADED.value,
        QuizAttemptStatus.GRADED.value,
    }
)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    course_id UUID PRIMARY KEY,
    branch_id UUID,
    title TEXT,
    price DECIMAL,
    requires_approval BOOLEAN
)
"""

# Clustered by position so one partition read returns the ordered syllabus
COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    module_order INT,
    module_id UUID,
    quiz_id UUID,
    title TEXT,
    PRIMARY KEY ((course_id), module_order, module_id)
) WITH CLUSTERING ORDER BY (module_order ASC, module_id ASC)
"""

QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    student_id UUID,
    quiz_id UUID,
    attempt_id TIMEUUID,
    status TEXT,
    percentage_score INT,
    submitted_at TIMESTAMP,
    PRIMARY KEY ((student_id, quiz_id), attempt_id)
) WITH CLUSTERING ORDER BY (attempt_id DESC)
"""

CATALOG_TABLES_CQL = [
    COURSES_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True)
class CourseInfo:
    course_id: UUID
    branch_id: UUID | None
    title: str
    price: Decimal = Decimal(0)
    requires_approval: bool = False

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    @classmethod
    def from_row(cls, row: Any) -> "CourseInfo":
        return cls(
            course_id=row.course_id,
            branch_id=row.branch_id,
            title=row.title or "",
            price=row.price or Decimal(0),
            requires_approval=bool(row.requires_approval),
        )


@dataclass(frozen=True)
class ModuleInfo:
    """One module of a course syllabus. ``order`` is 1-based."""

    module_id: UUID
    course_id: UUID
    order: int
    quiz_id: UUID | None = None
    title: str = ""

    @classmethod
    def from_row(cls, row: Any) -> "ModuleInfo":
        return cls(
            module_id=row.module_id,
            course_id=row.course_id,
            order=row.module_order,
            quiz_id=row.quiz_id,
            title=row.title or "",
        )


@dataclass(frozen=True)
class QuizAttempt:
    student_id: UUID
    quiz_id: UUID
    attempt_id: UUID
    status: str
    percentage_score: int
    submitted_at: datetime | None = None

    @property
    def qualifies(self) -> bool:
        """Submitted or graded attempts count, in-progress ones do not."""
        return self.status in QUALIFYING_ATTEMPT_STATUSES

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        return cls(
            student_id=row.student_id,
            quiz_id=row.quiz_id,
            attempt_id=row.attempt_id,
            status=row.status,
            percentage_score=row.percentage_score or 0,
            submitted_at=ensure_utc_aware(row.submitted_at),
        )
