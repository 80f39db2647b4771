"""Pydantic schemas for module access endpoints."""

from uuid import UUID

from elearning.core.schemas import ApiModel

from .policy import AccessDecision, AccessReason


class ModuleAccessResponse(ApiModel):
    module_id: UUID
    order: int
    accessible: bool
    reason: AccessReason
    message: str

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "ModuleAccessResponse":
        return cls.model_validate(decision)


class ModuleAccessDetailsResponse(ApiModel):
    course_id: UUID
    passing_threshold: int
    modules: list[ModuleAccessResponse]
