"""Learning progress tracking: content, module and course aggregates."""

from .models import (
    ContentProgress,
    ContentProgressEvent,
    LearningProgress,
    ModuleProgress,
    ProgressStatus,
)


__all__ = [
    "ContentProgress",
    "ContentProgressEvent",
    "LearningProgress",
    "ModuleProgress",
    "ProgressStatus",
]
