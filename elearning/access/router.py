"""Module accessibility endpoints (read only)."""

from uuid import UUID

from fastapi import APIRouter

from elearning.auth.dependencies import CurrentUser
from elearning.catalog.dependencies import CatalogReaderDep
from elearning.core.exceptions import EngineError, NotFoundError, to_http_exception

from .dependencies import AccessServiceDep
from .schemas import ModuleAccessDetailsResponse, ModuleAccessResponse


router = APIRouter(prefix="/v1/courses", tags=["access"])


async def _list_modules(catalog: CatalogReaderDep, course_id: UUID):
    course = await catalog.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found", "course_not_found")
    return await catalog.list_modules(course_id)


@router.get(
    "/{course_id}/modules/access",
    response_model=dict[UUID, bool],
    summary="Which modules the student may open",
)
async def module_access(
    course_id: UUID,
    access_service: AccessServiceDep,
    catalog: CatalogReaderDep,
    user: CurrentUser,
) -> dict[UUID, bool]:
    try:
        modules = await _list_modules(catalog, course_id)
        return await access_service.compute_accessibility(user.id, course_id, modules)
    except EngineError as e:
        raise to_http_exception(e) from e


@router.get(
    "/{course_id}/modules/access/details",
    response_model=ModuleAccessDetailsResponse,
    summary="Module access with reasons",
)
async def module_access_details(
    course_id: UUID,
    access_service: AccessServiceDep,
    catalog: CatalogReaderDep,
    user: CurrentUser,
) -> ModuleAccessDetailsResponse:
    try:
        modules = await _list_modules(catalog, course_id)
        decisions = await access_service.explain_accessibility(
            user.id, course_id, modules
        )
    except EngineError as e:
        raise to_http_exception(e) from e

    return ModuleAccessDetailsResponse(
        course_id=course_id,
        passing_threshold=access_service.passing_threshold,
        modules=[ModuleAccessResponse.from_decision(d) for d in decisions],
    )
