"""Enrollment API endpoints.

Provides routes for:
- Free-path self enrollment
- Listing and reading a student's enrollments
- Staff lifecycle transitions and completion re-dispatch
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from elearning.auth.dependencies import AdminUser, CurrentUser
from elearning.auth.permissions import is_admin
from elearning.catalog.dependencies import CatalogReaderDep
from elearning.completion.dependencies import CompletionDispatcherDep
from elearning.core.exceptions import (
    EngineError,
    InvalidRequestError,
    NotFoundError,
    to_http_exception,
)

from .dependencies import EnrollmentServiceDep
from .models import EnrollmentStatus
from .schemas import (
    DispatchResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    TransitionRequest,
)


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a free course",
)
async def enroll(
    data: EnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    catalog: CatalogReaderDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll the current student in a free course.

    Paid courses are enrolled through the payment callback instead.
    """
    try:
        course = await catalog.get_course(data.course_id)
        if course is None:
            raise NotFoundError("Course not found", "course_not_found")
        enrollment = await enrollment_service.enroll_free(user.id, course)
        return EnrollmentResponse.from_entity(enrollment)
    except EngineError as e:
        raise to_http_exception(e) from e


@router.get("/my", response_model=EnrollmentListResponse, summary="My enrollments")
async def my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    try:
        enrollments = await enrollment_service.list_for_student(user.id)
    except EngineError as e:
        raise to_http_exception(e) from e

    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Students see their own enrollments; admins see any."""
    try:
        enrollment = await enrollment_service.get_enrollment(enrollment_id)
    except EngineError as e:
        raise to_http_exception(e) from e

    if enrollment.student_id != user.id and not is_admin(user.role):
        # Same answer as a missing enrollment, ids are not probeable
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment not found",
        )
    return EnrollmentResponse.from_entity(enrollment)


@router.post(
    "/{enrollment_id}/transition",
    response_model=EnrollmentResponse,
    summary="Change enrollment status (admin)",
)
async def transition_enrollment(
    enrollment_id: UUID,
    data: TransitionRequest,
    enrollment_service: EnrollmentServiceDep,
    _admin: AdminUser,
) -> EnrollmentResponse:
    """Apply a lifecycle transition.

    ``completed`` is refused; completion comes from course progress.
    """
    try:
        if data.status == EnrollmentStatus.COMPLETED:
            raise InvalidRequestError(
                "Completion is recorded from course progress",
                "completion_from_progress",
            )
        enrollment = await enrollment_service.transition(
            enrollment_id, data.status, reason=data.reason
        )
    except EngineError as e:
        raise to_http_exception(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@router.post(
    "/{enrollment_id}/completion/dispatch",
    response_model=DispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Re-run completion side effects (admin)",
)
async def redispatch_completion(
    enrollment_id: UUID,
    dispatcher: CompletionDispatcherDep,
    _admin: AdminUser,
) -> DispatchResponse:
    try:
        queued = await dispatcher.redispatch(enrollment_id)
    except EngineError as e:
        raise to_http_exception(e) from e
    return DispatchResponse(enrollment_id=enrollment_id, queued=queued)
