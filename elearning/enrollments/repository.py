# ruff: noqa: S608
"""Cassandra persistence for enrollments.

Every mutation of an existing row is a conditional update on ``version``;
callers re-read and retry when :meth:`EnrollmentRepository.compare_and_set`
returns False.
"""

from datetime import UTC, datetime
from uuid import UUID

import structlog

from elearning.core.database.store import CassandraStore

from .models import Enrollment


logger = structlog.get_logger(__name__)

_COLUMNS = (
    "enrollment_id, student_id, course_id, branch_id, status, enrollment_type, "
    "payment_reference, progress, progress_version, enrolled_at, "
    "last_accessed_at, completed_at, dropped_at, drop_reason, "
    "certificate_issued_at, version, updated_at"
)


class EnrollmentRepository(CassandraStore):
    """Enrollment rows, the (student, course) key table and the student lookup."""

    def _prepare_statements(self) -> None:
        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments WHERE enrollment_id = ?
        """)

        self._delete = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments WHERE enrollment_id = ?
        """)

        self._update_if_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, progress = ?, progress_version = ?,
                last_accessed_at = ?, completed_at = ?, dropped_at = ?,
                drop_reason = ?, certificate_issued_at = ?, version = ?,
                updated_at = ?
            WHERE enrollment_id = ?
            IF version = ?
        """)

        # Uniqueness guard
        self._claim_key = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollment_keys
            (student_id, course_id, enrollment_id, claimed_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_key = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollment_keys
            WHERE student_id = ? AND course_id = ?
        """)

        self._release_key = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollment_keys
            WHERE student_id = ? AND course_id = ?
            IF enrollment_id = ?
        """)

        # Lookup by student
        self._insert_by_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_student
            (student_id, enrolled_at, enrollment_id, course_id)
            VALUES (?, ?, ?, ?)
        """)

        self._list_by_student = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollments_by_student
            WHERE student_id = ?
        """)

    async def insert(self, enrollment: Enrollment) -> None:
        await self._execute(self._insert, enrollment.to_row())

    async def index_for_student(self, enrollment: Enrollment) -> None:
        await self._execute(
            self._insert_by_student,
            [
                enrollment.student_id,
                enrollment.enrolled_at,
                enrollment.enrollment_id,
                enrollment.course_id,
            ],
        )

    async def delete(self, enrollment_id: UUID) -> None:
        await self._execute(self._delete, [enrollment_id])

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self._execute(self._get, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """The enrollment currently holding the (student, course) key."""
        result = await self._execute(self._get_key, [student_id, course_id])
        row = result.one()
        if not row:
            return None
        return await self.get(row.enrollment_id)

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        rows = await self._execute(self._list_by_student, [student_id])
        enrollments = []
        for row in rows:
            enrollment = await self.get(row.enrollment_id)
            if enrollment:
                enrollments.append(enrollment)
        return enrollments

    async def claim_key(
        self, student_id: UUID, course_id: UUID, enrollment_id: UUID
    ) -> UUID | None:
        """Claim the pair for ``enrollment_id``.

        Returns:
            None when the claim succeeded, otherwise the id of the enrollment
            already holding the key.
        """
        result = await self._execute(
            self._claim_key,
            [student_id, course_id, enrollment_id, datetime.now(UTC)],
        )
        if result.was_applied:
            return None
        return result.one().enrollment_id

    async def release_key(
        self, student_id: UUID, course_id: UUID, enrollment_id: UUID
    ) -> bool:
        """Release the pair, only if ``enrollment_id`` still holds it."""
        result = await self._execute(
            self._release_key, [student_id, course_id, enrollment_id]
        )
        if result.was_applied:
            logger.debug(
                "enrollment_key_released",
                student_id=str(student_id),
                course_id=str(course_id),
                enrollment_id=str(enrollment_id),
            )
        return result.was_applied

    async def compare_and_set(self, enrollment: Enrollment, expected_version: int) -> bool:
        """Write the mutable columns if the stored version is still ``expected_version``."""
        result = await self._execute(
            self._update_if_version,
            [
                enrollment.status.value,
                enrollment.progress,
                enrollment.progress_version,
                enrollment.last_accessed_at,
                enrollment.completed_at,
                enrollment.dropped_at,
                enrollment.drop_reason,
                enrollment.certificate_issued_at,
                enrollment.version,
                enrollment.updated_at,
                enrollment.enrollment_id,
                expected_version,
            ],
        )
        return result.was_applied
