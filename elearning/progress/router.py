"""Progress tracking endpoints.

Provides routes for:
- Content progress updates (module and course aggregates recomputed)
- Course progress queries
"""

from uuid import UUID

from fastapi import APIRouter

from elearning.auth.dependencies import CurrentUser
from elearning.core.exceptions import EngineError, to_http_exception

from .dependencies import ProgressServiceDep
from .schemas import (
    CourseProgressResponse,
    ProgressUpdateResponse,
    UpdateContentProgressRequest,
)


router = APIRouter(prefix="/v1/courses", tags=["progress"])


@router.put(
    "/{course_id}/modules/{module_id}/content/{content_id}/progress",
    response_model=ProgressUpdateResponse,
    summary="Update content progress",
)
async def update_content_progress(
    course_id: UUID,
    module_id: UUID,
    content_id: UUID,
    data: UpdateContentProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ProgressUpdateResponse:
    """Record progress on a content item.

    Requires an enrollment that accepts progress.
    Reaching 100% overall completes the enrollment.
    """
    try:
        result = await progress_service.record_content_progress(
            student_id=user.id,
            course_id=course_id,
            module_id=module_id,
            content_id=content_id,
            event=data.to_event(),
        )
    except EngineError as e:
        raise to_http_exception(e) from e

    return ProgressUpdateResponse.build(result.content, result.module, result.course)


@router.get(
    "/{course_id}/progress",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    try:
        progress = await progress_service.get_course_progress(user.id, course_id)
    except EngineError as e:
        raise to_http_exception(e) from e
    return CourseProgressResponse.from_entity(progress)
