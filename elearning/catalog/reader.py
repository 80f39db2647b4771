# ruff: noqa: S608
"""Cassandra readers for the externally-authored catalog."""

from uuid import UUID

import structlog

from elearning.core.database.store import CassandraStore

from .models import CourseInfo, ModuleInfo, QuizAttempt


logger = structlog.get_logger(__name__)


class CatalogReader(CassandraStore):
    """Course and syllabus lookups."""

    def _prepare_statements(self) -> None:
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE course_id = ?
        """)

        self._list_modules = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_modules WHERE course_id = ?
        """)

    async def get_course(self, course_id: UUID) -> CourseInfo | None:
        result = await self._execute(self._get_course, [course_id])
        row = result.one()
        return CourseInfo.from_row(row) if row else None

    async def list_modules(self, course_id: UUID) -> list[ModuleInfo]:
        """Modules of a course, ordered by position."""
        rows = await self._execute(self._list_modules, [course_id])
        modules = [ModuleInfo.from_row(row) for row in rows]
        return sorted(modules, key=lambda m: m.order)


class CassandraQuizAttemptReader(CassandraStore):
    """Reads quiz attempts written by the quiz service."""

    def _prepare_statements(self) -> None:
        self._list_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE student_id = ? AND quiz_id = ?
        """)

    async def best_passing_attempt(
        self,
        student_id: UUID,
        quiz_id: UUID,
        threshold: int,
    ) -> QuizAttempt | None:
        """Highest-scoring qualifying attempt at or above ``threshold``."""
        rows = await self._execute(self._list_attempts, [student_id, quiz_id])
        best: QuizAttempt | None = None
        for row in rows:
            attempt = QuizAttempt.from_row(row)
            if not attempt.qualifies or attempt.percentage_score < threshold:
                continue
            if best is None or attempt.percentage_score > best.percentage_score:
                best = attempt
        return best
