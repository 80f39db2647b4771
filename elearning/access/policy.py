"""Sequential module access policy.

A pure function over three snapshots: the ordered syllabus, the student's
module statuses and the set of quizzes the student has passed. It is
evaluated on every read because quiz attempts change between requests.

Rules for a module ``m``:
1. ``m`` is the first module: accessible.
2. ``m`` is already started or completed: accessible, whatever happened
   upstream since.
3. The previous module has a quiz: accessible iff that quiz is passed.
4. The previous module has no quiz: accessible iff it is completed.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from elearning.catalog.models import ModuleInfo
from elearning.progress.models import ProgressStatus


class AccessReason(str, Enum):
    FIRST_MODULE = "first_module"
    ALREADY_STARTED = "already_started"
    QUIZ_PASSED = "quiz_passed"
    QUIZ_NOT_PASSED = "quiz_not_passed"
    PREVIOUS_COMPLETED = "previous_completed"
    PREVIOUS_NOT_COMPLETED = "previous_not_completed"
    NO_PREREQUISITE = "no_prerequisite"


@dataclass(frozen=True)
class AccessDecision:
    module_id: UUID
    order: int
    accessible: bool
    reason: AccessReason
    message: str


def required_quizzes(
    modules: Sequence[ModuleInfo],
    statuses: Mapping[UUID, ProgressStatus],
) -> set[UUID]:
    """Quiz ids whose results decide access for some not-yet-started module."""
    by_order = {m.order: m for m in modules}
    quiz_ids: set[UUID] = set()
    for module in modules:
        if _is_started(statuses.get(module.module_id)):
            continue
        prev = by_order.get(module.order - 1)
        if prev is not None and prev.quiz_id is not None:
            quiz_ids.add(prev.quiz_id)
    return quiz_ids


def evaluate_access(
    modules: Sequence[ModuleInfo],
    statuses: Mapping[UUID, ProgressStatus],
    passed_quizzes: Iterable[UUID],
    threshold: int = 60,
) -> list[AccessDecision]:
    """Decide access for every module, in ascending order."""
    passed = set(passed_quizzes)
    ordered = sorted(modules, key=lambda m: m.order)
    by_order = {m.order: m for m in ordered}
    return [_decide(m, by_order, statuses, passed, threshold) for m in ordered]


def _decide(
    module: ModuleInfo,
    by_order: Mapping[int, ModuleInfo],
    statuses: Mapping[UUID, ProgressStatus],
    passed: set[UUID],
    threshold: int,
) -> AccessDecision:
    def decision(accessible: bool, reason: AccessReason, message: str) -> AccessDecision:
        return AccessDecision(module.module_id, module.order, accessible, reason, message)

    if module.order <= 1:
        return decision(True, AccessReason.FIRST_MODULE, "First module of the course")

    if _is_started(statuses.get(module.module_id)):
        return decision(True, AccessReason.ALREADY_STARTED, "Module already started")

    prev = by_order.get(module.order - 1)
    if prev is None:
        return decision(True, AccessReason.NO_PREREQUISITE, "No previous module")

    if prev.quiz_id is not None:
        if prev.quiz_id in passed:
            return decision(
                True, AccessReason.QUIZ_PASSED, f"Quiz of module {prev.order} passed"
            )
        return decision(
            False,
            AccessReason.QUIZ_NOT_PASSED,
            f"Complete the quiz of module {prev.order} with at least {threshold}%",
        )

    if statuses.get(prev.module_id) == ProgressStatus.COMPLETED:
        return decision(
            True, AccessReason.PREVIOUS_COMPLETED, f"Module {prev.order} completed"
        )
    return decision(
        False,
        AccessReason.PREVIOUS_NOT_COMPLETED,
        f"Complete module {prev.order} first",
    )


def _is_started(status: ProgressStatus | None) -> bool:
    return status in (ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED)


def as_map(decisions: Iterable[AccessDecision]) -> dict[UUID, bool]:
    return {d.module_id: d.accessible for d in decisions}
