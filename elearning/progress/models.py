"""Learning progress document and Cassandra schema.

One document per (student, course) holds the ordered module entries and, for
each module, the content items the student has touched. The document is
stored as a single row whose ``modules`` column is JSON, guarded by a
``version`` column for conditional writes.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from elearning.utils import ensure_utc_aware


class ProgressStatus(str, Enum):
    """Progress status, only ever moves forward."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


STATUS_RANK: dict[ProgressStatus, int] = {
    ProgressStatus.NOT_STARTED: 0,
    ProgressStatus.IN_PROGRESS: 1,
    ProgressStatus.COMPLETED: 2,
}


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

LEARNING_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.learning_progress (
    student_id UUID,
    course_id UUID,
    branch_id UUID,
    overall_progress INT,
    status TEXT,
    total_time_spent INT,
    last_activity_at TIMESTAMP,
    modules TEXT,
    version BIGINT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((student_id, course_id))
)
"""

PROGRESS_TABLES_CQL = [
    LEARNING_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Documents
# ==============================================================================


class ContentProgress(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    content_id: UUID
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress: int = Field(default=0, ge=0, le=100)
    time_spent: int = Field(default=0, ge=0, description="Minutes")
    viewed_at: datetime | None = None
    completed_at: datetime | None = None


class ModuleProgress(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    module_id: UUID
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress: int = Field(default=0, ge=0, le=100)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    time_spent: int = Field(default=0, ge=0, description="Minutes")
    contents: list[ContentProgress] = Field(default_factory=list)

    def find_content(self, content_id: UUID) -> ContentProgress | None:
        return next((c for c in self.contents if c.content_id == content_id), None)

    @property
    def is_started(self) -> bool:
        return self.status != ProgressStatus.NOT_STARTED


_MODULES_ADAPTER = TypeAdapter(list[ModuleProgress])


class LearningProgress(BaseModel):
    """Aggregate progress of one student in one course."""

    student_id: UUID
    course_id: UUID
    branch_id: UUID | None = None
    overall_progress: int = Field(default=0, ge=0, le=100)
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    total_time_spent: int = Field(default=0, ge=0, description="Minutes")
    last_activity_at: datetime | None = None
    modules: list[ModuleProgress] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def find_module(self, module_id: UUID) -> ModuleProgress | None:
        return next((m for m in self.modules if m.module_id == module_id), None)

    def module_statuses(self) -> dict[UUID, ProgressStatus]:
        return {m.module_id: m.status for m in self.modules}

    @classmethod
    def from_row(cls, row: Any) -> "LearningProgress":
        return cls(
            student_id=row.student_id,
            course_id=row.course_id,
            branch_id=row.branch_id,
            overall_progress=row.overall_progress or 0,
            status=ProgressStatus(row.status or ProgressStatus.NOT_STARTED.value),
            total_time_spent=row.total_time_spent or 0,
            last_activity_at=ensure_utc_aware(row.last_activity_at),
            modules=_MODULES_ADAPTER.validate_json(row.modules) if row.modules else [],
            version=row.version or 0,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    def modules_json(self) -> str:
        return _MODULES_ADAPTER.dump_json(self.modules).decode()


@dataclass(frozen=True)
class ContentProgressEvent:
    """One client report for a content item.

    ``progress`` is an absolute percentage, ``time_spent`` a delta in minutes.
    """

    status: ProgressStatus | None = None
    progress: int | None = None
    time_spent: int = 0
