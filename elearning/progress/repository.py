# ruff: noqa: S608
"""Cassandra persistence for learning progress documents."""

from uuid import UUID

from elearning.core.database.store import CassandraStore

from .models import LearningProgress


class ProgressRepository(CassandraStore):
    """One row per (student, course); writes are conditional on ``version``."""

    def _prepare_statements(self) -> None:
        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.learning_progress
            WHERE student_id = ? AND course_id = ?
        """)

        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.learning_progress
            (student_id, course_id, branch_id, overall_progress, status,
             total_time_spent, last_activity_at, modules, version,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_if_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.learning_progress
            SET overall_progress = ?, status = ?, total_time_spent = ?,
                last_activity_at = ?, modules = ?, version = ?, updated_at = ?
            WHERE student_id = ? AND course_id = ?
            IF version = ?
        """)

    async def get(self, student_id: UUID, course_id: UUID) -> LearningProgress | None:
        result = await self._execute(self._get, [student_id, course_id])
        row = result.one()
        return LearningProgress.from_row(row) if row else None

    async def insert(self, doc: LearningProgress) -> bool:
        """Create the document. Returns False if another writer created it first."""
        result = await self._execute(
            self._insert,
            [
                doc.student_id,
                doc.course_id,
                doc.branch_id,
                doc.overall_progress,
                doc.status.value,
                doc.total_time_spent,
                doc.last_activity_at,
                doc.modules_json(),
                doc.version,
                doc.created_at,
                doc.updated_at,
            ],
        )
        return result.was_applied

    async def compare_and_set(self, doc: LearningProgress, expected_version: int) -> bool:
        result = await self._execute(
            self._update_if_version,
            [
                doc.overall_progress,
                doc.status.value,
                doc.total_time_spent,
                doc.last_activity_at,
                doc.modules_json(),
                doc.version,
                doc.updated_at,
                doc.student_id,
                doc.course_id,
                expected_version,
            ],
        )
        return result.was_applied
