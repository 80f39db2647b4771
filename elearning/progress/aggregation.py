"""Pure progress arithmetic.

Everything here works on copies of a :class:`LearningProgress` document and
recomputes percentages from integer counts on every call, so replaying the
same event never double counts and stale events cannot move a status back.
"""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from .models import (
    STATUS_RANK,
    ContentProgress,
    ContentProgressEvent,
    LearningProgress,
    ModuleProgress,
    ProgressStatus,
)


def percent(completed: int, total: int) -> int:
    """round(100 * completed / total), halves rounded up, integers only."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def advance(current: ProgressStatus, target: ProgressStatus) -> ProgressStatus:
    """The further along of two statuses."""
    return target if STATUS_RANK[target] > STATUS_RANK[current] else current


def seed_modules(doc: LearningProgress, module_ids: Sequence[UUID]) -> None:
    """Add a not-started entry for every known module missing from ``doc``.

    Module entries follow the syllabus order given; entries created by events
    for modules outside it stay after them.
    """
    existing = {m.module_id: m for m in doc.modules}
    ordered = [existing.pop(mid, None) or ModuleProgress(module_id=mid) for mid in module_ids]
    doc.modules = ordered + list(existing.values())


def _apply_to_content(
    content: ContentProgress, event: ContentProgressEvent, now: datetime
) -> None:
    if content.viewed_at is None:
        content.viewed_at = now
    content.status = advance(content.status, ProgressStatus.IN_PROGRESS)

    if event.progress is not None:
        content.progress = max(content.progress, max(0, min(100, event.progress)))
    if event.time_spent:
        content.time_spent += event.time_spent

    if event.status == ProgressStatus.COMPLETED or content.progress >= 100:
        content.status = ProgressStatus.COMPLETED
    if content.status == ProgressStatus.COMPLETED:
        content.progress = 100
        content.completed_at = content.completed_at or now


def recompute_module(module: ModuleProgress, now: datetime) -> None:
    completed = sum(1 for c in module.contents if c.status == ProgressStatus.COMPLETED)
    module.progress = percent(completed, len(module.contents))

    target = ProgressStatus.NOT_STARTED
    if module.contents:
        target = ProgressStatus.IN_PROGRESS
    if module.contents and module.progress >= 100:
        target = ProgressStatus.COMPLETED
    module.status = advance(module.status, target)

    if module.status != ProgressStatus.NOT_STARTED and module.started_at is None:
        module.started_at = now
    if module.status == ProgressStatus.COMPLETED and module.completed_at is None:
        module.completed_at = now


def recompute_course(doc: LearningProgress) -> None:
    completed = sum(1 for m in doc.modules if m.status == ProgressStatus.COMPLETED)
    doc.overall_progress = percent(completed, len(doc.modules))

    target = ProgressStatus.NOT_STARTED
    if any(m.is_started for m in doc.modules):
        target = ProgressStatus.IN_PROGRESS
    if doc.modules and doc.overall_progress >= 100:
        target = ProgressStatus.COMPLETED
    doc.status = advance(doc.status, target)


def apply_content_event(
    doc: LearningProgress,
    module_id: UUID,
    content_id: UUID,
    event: ContentProgressEvent,
    now: datetime,
    known_module_ids: Sequence[UUID] = (),
) -> tuple[LearningProgress, bool]:
    """Apply one content event to a copy of ``doc``.

    Returns:
        Tuple of (new document with version bumped, course completed by this event)
    """
    updated = doc.model_copy(deep=True)
    was_completed = updated.status == ProgressStatus.COMPLETED

    if known_module_ids:
        seed_modules(updated, known_module_ids)

    module = updated.find_module(module_id)
    if module is None:
        module = ModuleProgress(module_id=module_id)
        updated.modules.append(module)

    content = module.find_content(content_id)
    if content is None:
        content = ContentProgress(content_id=content_id)
        module.contents.append(content)

    _apply_to_content(content, event, now)

    module.last_accessed_at = now
    if event.time_spent:
        module.time_spent += event.time_spent
        updated.total_time_spent += event.time_spent
    recompute_module(module, now)
    recompute_course(updated)

    updated.last_activity_at = now
    updated.updated_at = now
    updated.version = doc.version + 1

    completed_now = not was_completed and updated.status == ProgressStatus.COMPLETED
    return updated, completed_now
