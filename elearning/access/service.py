"""Module access read service.

Gathers the snapshots the access policy needs and evaluates it. Nothing here
writes.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .policy import AccessDecision, as_map, evaluate_access, required_quizzes


if TYPE_CHECKING:
    from elearning.catalog.models import ModuleInfo
    from elearning.catalog.reader import CatalogReader
    from elearning.progress.repository import ProgressRepository

    from .protocols import QuizAttemptReader


logger = structlog.get_logger(__name__)


class AccessService:
    def __init__(
        self,
        progress_repository: "ProgressRepository",
        quiz_reader: "QuizAttemptReader",
        catalog: "CatalogReader",
        passing_threshold: int = 60,
    ):
        self.progress_repository = progress_repository
        self.quiz_reader = quiz_reader
        self.catalog = catalog
        self.passing_threshold = passing_threshold

    async def compute_accessibility(
        self,
        student_id: UUID,
        course_id: UUID,
        ordered_modules: Sequence["ModuleInfo"] | None = None,
    ) -> dict[UUID, bool]:
        """Map of module id to whether the student may open it now."""
        decisions = await self.explain_accessibility(
            student_id, course_id, ordered_modules
        )
        return as_map(decisions)

    async def explain_accessibility(
        self,
        student_id: UUID,
        course_id: UUID,
        ordered_modules: Sequence["ModuleInfo"] | None = None,
    ) -> list[AccessDecision]:
        """Per-module decision with its reason, in syllabus order."""
        modules = (
            list(ordered_modules)
            if ordered_modules is not None
            else await self.catalog.list_modules(course_id)
        )
        if not modules:
            return []

        progress = await self.progress_repository.get(student_id, course_id)
        statuses = progress.module_statuses() if progress else {}

        passed: set[UUID] = set()
        for quiz_id in required_quizzes(modules, statuses):
            attempt = await self.quiz_reader.best_passing_attempt(
                student_id, quiz_id, self.passing_threshold
            )
            if attempt is not None:
                passed.add(quiz_id)

        decisions = evaluate_access(modules, statuses, passed, self.passing_threshold)
        logger.debug(
            "module_access_evaluated",
            student_id=str(student_id),
            course_id=str(course_id),
            locked=sum(1 for d in decisions if not d.accessible),
        )
        return decisions
