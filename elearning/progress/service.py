"""Progress tracking service.

Sole writer of learning progress documents. Each content event is a
read-modify-write cycle on the (student, course) document, committed with a
conditional write on ``version`` and retried from a fresh read when another
writer got there first. After the document is committed the enrollment mirror
is updated, and a completion it causes is handed to the dispatcher.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from elearning.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    WriteConflictError,
)
from elearning.enrollments.models import Enrollment

from .aggregation import apply_content_event, seed_modules
from .models import (
    ContentProgress,
    ContentProgressEvent,
    LearningProgress,
    ModuleProgress,
)


if TYPE_CHECKING:
    from elearning.catalog.reader import CatalogReader
    from elearning.completion.dispatcher import CompletionDispatcher
    from elearning.enrollments.service import EnrollmentService

    from .repository import ProgressRepository


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    """Result of one content event."""

    content: ContentProgress
    module: ModuleProgress
    course: LearningProgress
    enrollment: Enrollment
    course_completed: bool


class ProgressService:
    """Records content progress and keeps module and course aggregates current."""

    def __init__(
        self,
        repository: "ProgressRepository",
        enrollment_service: "EnrollmentService",
        catalog: "CatalogReader | None" = None,
        dispatcher: "CompletionDispatcher | None" = None,
        max_write_retries: int = 5,
    ):
        """Initialize the service.

        Args:
            repository: Progress document storage
            enrollment_service: Owner of the enrollment mirror
            catalog: Syllabus lookup; without it only touched modules count
            dispatcher: Receives course completions
            max_write_retries: Conditional-write attempts per event
        """
        self.repository = repository
        self.enrollment_service = enrollment_service
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.max_write_retries = max_write_retries

    async def record_content_progress(
        self,
        student_id: UUID,
        course_id: UUID,
        module_id: UUID,
        content_id: UUID,
        event: ContentProgressEvent,
    ) -> ProgressUpdate:
        """Apply a content event and propagate it.

        Raises:
            ForbiddenError: No enrollment, or an enrollment that blocks writes
            NotFoundError: Module not part of the course syllabus
            WriteConflictError: Conditional-write retries exhausted
        """
        enrollment = await self.enrollment_service.get_for_student_course(
            student_id, course_id
        )
        if enrollment is None or not enrollment.accepts_progress:
            logger.info(
                "progress_rejected_not_enrolled",
                student_id=str(student_id),
                course_id=str(course_id),
                enrollment_status=enrollment.status.value if enrollment else None,
            )
            raise ForbiddenError

        modules = await self.catalog.list_modules(course_id) if self.catalog else []
        known_ids = [m.module_id for m in modules]
        if known_ids and module_id not in known_ids:
            raise NotFoundError("Module not found", "module_not_found")

        current = await self.repository.get(student_id, course_id)

        now = datetime.now(UTC)
        for attempt in range(1, self.max_write_retries + 1):
            base = current or LearningProgress(
                student_id=student_id,
                course_id=course_id,
                branch_id=enrollment.branch_id,
                created_at=now,
            )
            updated, course_completed = apply_content_event(
                base, module_id, content_id, event, now, known_ids
            )

            if current is None:
                committed = await self.repository.insert(updated)
            else:
                committed = await self.repository.compare_and_set(
                    updated, current.version
                )
            if committed:
                break

            logger.debug(
                "progress_write_conflict",
                student_id=str(student_id),
                course_id=str(course_id),
                attempt=attempt,
            )
            current = await self.repository.get(student_id, course_id)
        else:
            logger.warning(
                "progress_write_retries_exhausted",
                student_id=str(student_id),
                course_id=str(course_id),
                attempts=self.max_write_retries,
            )
            raise WriteConflictError

        if course_completed:
            logger.info(
                "course_progress_completed",
                student_id=str(student_id),
                course_id=str(course_id),
            )

        enrollment, enrollment_completed = await self.enrollment_service.record_progress(
            enrollment.enrollment_id,
            updated.overall_progress,
            now,
            progress_version=updated.version,
        )
        if enrollment_completed and self.dispatcher is not None:
            await self.dispatcher.on_course_completed(
                student_id, course_id, enrollment.enrollment_id
            )

        module = updated.find_module(module_id)
        return ProgressUpdate(
            content=module.find_content(content_id),
            module=module,
            course=updated,
            enrollment=enrollment,
            course_completed=course_completed,
        )

    async def get_course_progress(
        self, student_id: UUID, course_id: UUID
    ) -> LearningProgress:
        """Progress document, or an empty not-started view when there is none."""
        doc = await self.repository.get(student_id, course_id)
        if doc is not None:
            return doc

        doc = LearningProgress(student_id=student_id, course_id=course_id)
        if self.catalog is not None:
            modules = await self.catalog.list_modules(course_id)
            seed_modules(doc, [m.module_id for m in modules])
        return doc
