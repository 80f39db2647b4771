"""Pydantic schemas for progress endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from elearning.core.schemas import ApiModel

from .models import (
    ContentProgress,
    ContentProgressEvent,
    LearningProgress,
    ModuleProgress,
    ProgressStatus,
)


class UpdateContentProgressRequest(ApiModel):
    """Client report for one content item.

    ``progress`` is the absolute percentage reached, ``time_spent`` the
    minutes spent since the previous report.
    """

    status: ProgressStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    time_spent: int = Field(default=0, ge=0)

    def to_event(self) -> ContentProgressEvent:
        return ContentProgressEvent(
            status=self.status,
            progress=self.progress,
            time_spent=self.time_spent,
        )


class ContentProgressResponse(ApiModel):
    content_id: UUID
    status: ProgressStatus
    progress: int
    time_spent: int
    viewed_at: datetime | None = None
    completed_at: datetime | None = None


class ModuleProgressResponse(ApiModel):
    module_id: UUID
    status: ProgressStatus
    progress: int
    time_spent: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    contents: list[ContentProgressResponse] = Field(default_factory=list)


class CourseProgressResponse(ApiModel):
    student_id: UUID
    course_id: UUID
    status: ProgressStatus
    overall_progress: int
    total_time_spent: int
    last_activity_at: datetime | None = None
    modules: list[ModuleProgressResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: LearningProgress) -> "CourseProgressResponse":
        return cls.model_validate(entity.model_dump())


class ProgressUpdateResponse(ApiModel):
    """Content, module and course state after an update."""

    content_progress: ContentProgressResponse
    module_progress: ModuleProgressResponse
    course_progress: CourseProgressResponse

    @classmethod
    def build(
        cls,
        content: ContentProgress,
        module: ModuleProgress,
        course: LearningProgress,
    ) -> "ProgressUpdateResponse":
        return cls(
            content_progress=ContentProgressResponse.model_validate(content.model_dump()),
            module_progress=ModuleProgressResponse.model_validate(module.model_dump()),
            course_progress=CourseProgressResponse.from_entity(course),
        )
