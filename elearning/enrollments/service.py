"""Enrollment lifecycle service.

Sole writer of enrollment status and the progress mirror. All updates are
read-modify-write cycles guarded by the row ``version``; a lost race re-reads
the row and re-applies the change.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from elearning.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    WriteConflictError,
)

from .models import (
    Enrollment,
    EnrollmentStatus,
    EnrollmentType,
    can_transition,
    releases_key,
)


if TYPE_CHECKING:
    from elearning.catalog.models import CourseInfo

    from .repository import EnrollmentRepository


logger = structlog.get_logger(__name__)

INITIAL_STATUSES = frozenset(
    {EnrollmentStatus.PENDING, EnrollmentStatus.ACTIVE, EnrollmentStatus.APPROVED}
)

# Mutation applied to the current row; returning None means "nothing to write"
Mutation = Callable[[Enrollment], Enrollment | None]


class EnrollmentService:
    """Creates enrollments and moves them through their lifecycle."""

    def __init__(self, repository: "EnrollmentRepository", max_write_retries: int = 5):
        self.repository = repository
        self.max_write_retries = max_write_retries

    # ==========================================================================
    # Creation
    # ==========================================================================

    async def create_enrollment(
        self,
        student_id: UUID,
        course_id: UUID,
        branch_id: UUID | None,
        initial_status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
        enrollment_type: EnrollmentType = EnrollmentType.FREE,
        payment_reference: str | None = None,
    ) -> Enrollment:
        """Create an enrollment for the pair.

        The row is written first and then claims the (student, course) key.
        When another enrollment holds the key the new row is removed again,
        so concurrent creators end with exactly one winner.

        Raises:
            ConflictError: If a live or completed enrollment exists for the pair
            InvalidRequestError: If ``initial_status`` cannot start a lifecycle
        """
        if initial_status not in INITIAL_STATUSES:
            raise InvalidRequestError(
                f"Enrollment cannot start as '{initial_status.value}'"
            )

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            branch_id=branch_id,
            status=initial_status,
            enrollment_type=enrollment_type,
            payment_reference=payment_reference,
        )
        await self.repository.insert(enrollment)

        try:
            await self._claim(enrollment)
        except ConflictError:
            await self.repository.delete(enrollment.enrollment_id)
            raise

        await self.repository.index_for_student(enrollment)

        logger.info(
            "enrollment_created",
            enrollment_id=str(enrollment.enrollment_id),
            student_id=str(student_id),
            course_id=str(course_id),
            status=initial_status.value,
            enrollment_type=enrollment_type.value,
        )
        return enrollment

    async def enroll_free(self, student_id: UUID, course: "CourseInfo") -> Enrollment:
        """Self-service enrollment in a free course.

        Courses that require approval start ``pending``; the rest start
        ``active``.

        Raises:
            ForbiddenError: If the course is paid (enrollment goes through payment)
            ConflictError: If the student is already enrolled
        """
        if not course.is_free:
            raise ForbiddenError(
                "This course requires payment", "payment_required"
            )

        initial_status = (
            EnrollmentStatus.PENDING
            if course.requires_approval
            else EnrollmentStatus.ACTIVE
        )
        return await self.create_enrollment(
            student_id=student_id,
            course_id=course.course_id,
            branch_id=course.branch_id,
            initial_status=initial_status,
            enrollment_type=EnrollmentType.FREE,
        )

    async def _claim(self, enrollment: Enrollment) -> None:
        # Two rounds: the second one follows the release of a stale holder
        for _ in range(2):
            holder_id = await self.repository.claim_key(
                enrollment.student_id, enrollment.course_id, enrollment.enrollment_id
            )
            if holder_id is None or holder_id == enrollment.enrollment_id:
                return

            holder = await self.repository.get(holder_id)
            if holder is not None and not releases_key(holder.status):
                logger.info(
                    "enrollment_conflict",
                    student_id=str(enrollment.student_id),
                    course_id=str(enrollment.course_id),
                    existing_enrollment_id=str(holder_id),
                    existing_status=holder.status.value,
                )
                raise ConflictError(
                    "Student is already enrolled in this course",
                    "already_enrolled",
                )

            await self.repository.release_key(
                enrollment.student_id, enrollment.course_id, holder_id
            )

        raise ConflictError(
            "Student is already enrolled in this course", "already_enrolled"
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.repository.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found", "enrollment_not_found")
        return enrollment

    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return await self.repository.get_for_student_course(student_id, course_id)

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        return await self.repository.list_for_student(student_id)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def transition(
        self,
        enrollment_id: UUID,
        new_status: EnrollmentStatus,
        reason: str | None = None,
    ) -> Enrollment:
        """Move an enrollment to ``new_status``.

        Raises:
            NotFoundError: If the enrollment does not exist
            InvalidTransitionError: If the edge is not in the transition table
        """

        def apply(current: Enrollment) -> Enrollment:
            if not can_transition(current.status, new_status):
                raise InvalidTransitionError(current.status.value, new_status.value)

            now = datetime.now(UTC)
            changes: dict = {"status": new_status, "updated_at": now}
            if new_status == EnrollmentStatus.COMPLETED:
                changes["progress"] = 100
                changes["completed_at"] = current.completed_at or now
            elif new_status == EnrollmentStatus.DROPPED:
                changes["dropped_at"] = now
                changes["drop_reason"] = reason
            return current.evolve(**changes)

        previous, updated = await self._update(enrollment_id, apply)

        if releases_key(updated.status):
            await self.repository.release_key(
                updated.student_id, updated.course_id, updated.enrollment_id
            )

        logger.info(
            "enrollment_transitioned",
            enrollment_id=str(enrollment_id),
            from_status=previous.status.value,
            to_status=updated.status.value,
        )
        return updated

    async def drop(self, enrollment_id: UUID, reason: str | None = None) -> Enrollment:
        return await self.transition(enrollment_id, EnrollmentStatus.DROPPED, reason)

    async def record_progress(
        self,
        enrollment_id: UUID,
        progress_percent: int,
        accessed_at: datetime,
        progress_version: int | None = None,
    ) -> tuple[Enrollment, bool]:
        """Update the progress mirror, completing the enrollment at 100%.

        ``progress_version`` is the version of the progress document the value
        was computed from; an older or equal version than the one already
        mirrored is ignored so the mirror never moves backwards in time.

        Returns:
            Tuple of (enrollment, completed_now). ``completed_now`` is True only
            for the call that moved the enrollment to ``completed``.
        """
        progress_percent = max(0, min(100, progress_percent))

        def apply(current: Enrollment) -> Enrollment | None:
            if (
                progress_version is not None
                and progress_version <= current.progress_version
            ):
                return None

            last_accessed = max(
                filter(None, [current.last_accessed_at, accessed_at])
            )
            changes: dict = {
                "last_accessed_at": last_accessed,
                "progress_version": (
                    progress_version
                    if progress_version is not None
                    else current.progress_version
                ),
            }

            if current.is_completed:
                return current.evolve(**changes)

            changes["progress"] = progress_percent
            if progress_percent >= 100:
                if can_transition(current.status, EnrollmentStatus.COMPLETED):
                    changes["status"] = EnrollmentStatus.COMPLETED
                    changes["completed_at"] = accessed_at
                else:
                    logger.info(
                        "enrollment_completion_deferred",
                        enrollment_id=str(current.enrollment_id),
                        status=current.status.value,
                    )
            return current.evolve(**changes)

        previous, updated = await self._update(enrollment_id, apply)
        completed_now = updated.is_completed and not previous.is_completed

        if completed_now:
            logger.info(
                "enrollment_completed",
                enrollment_id=str(enrollment_id),
                student_id=str(updated.student_id),
                course_id=str(updated.course_id),
            )
        return updated, completed_now

    async def mark_certificate_issued(
        self, enrollment_id: UUID, issued_at: datetime | None = None
    ) -> Enrollment:
        """Stamp ``certificate_issued_at`` once."""
        stamp = issued_at or datetime.now(UTC)

        def apply(current: Enrollment) -> Enrollment | None:
            if current.certificate_issued_at is not None:
                return None
            return current.evolve(certificate_issued_at=stamp)

        _, updated = await self._update(enrollment_id, apply)
        return updated

    async def _update(
        self, enrollment_id: UUID, mutation: Mutation
    ) -> tuple[Enrollment, Enrollment]:
        """Apply ``mutation`` with conditional writes, retrying on lost races.

        Returns:
            Tuple of (row the mutation was applied to, row as written).
        """
        for attempt in range(1, self.max_write_retries + 1):
            current = await self.get_enrollment(enrollment_id)
            updated = mutation(current)
            if updated is None:
                return current, current
            if await self.repository.compare_and_set(updated, current.version):
                return current, updated
            logger.debug(
                "enrollment_write_conflict",
                enrollment_id=str(enrollment_id),
                attempt=attempt,
            )

        logger.warning(
            "enrollment_write_retries_exhausted",
            enrollment_id=str(enrollment_id),
            attempts=self.max_write_retries,
        )
        raise WriteConflictError
