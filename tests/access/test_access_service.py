"""Tests for the module access read service."""

from uuid import uuid4

import pytest

from elearning.access.policy import AccessReason
from elearning.progress.models import ContentProgressEvent, ProgressStatus


@pytest.fixture
def quiz_course(catalog):
    """Three modules; the first one ends with a quiz."""
    return catalog.add_course([True, False, False])


class TestComputeAccessibility:
    @pytest.mark.asyncio
    async def test_new_student(self, access_service, quiz_course, student_id):
        info, modules = quiz_course

        access = await access_service.compute_accessibility(student_id, info.course_id)

        assert access == {
            modules[0].module_id: True,
            modules[1].module_id: False,
            modules[2].module_id: False,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("score", "accessible"), [(59, False), (60, True)])
    async def test_quiz_threshold(
        self, access_service, quiz_reader, quiz_course, student_id, score, accessible
    ):
        info, modules = quiz_course
        quiz_reader.record(student_id, modules[0].quiz_id, score)

        access = await access_service.compute_accessibility(student_id, info.course_id)

        assert access[modules[1].module_id] is accessible

    @pytest.mark.asyncio
    async def test_in_progress_attempt_does_not_count(
        self, access_service, quiz_reader, quiz_course, student_id
    ):
        info, modules = quiz_course
        quiz_reader.record(student_id, modules[0].quiz_id, 95, status="in_progress")

        access = await access_service.compute_accessibility(student_id, info.course_id)

        assert access[modules[1].module_id] is False

    @pytest.mark.asyncio
    async def test_pending_grading_attempt_counts(
        self, access_service, quiz_reader, quiz_course, student_id
    ):
        info, modules = quiz_course
        quiz_reader.record(
            student_id, modules[0].quiz_id, 75, status="submitted_pending_grading"
        )

        access = await access_service.compute_accessibility(student_id, info.course_id)

        assert access[modules[1].module_id] is True

    @pytest.mark.asyncio
    async def test_follows_progress(
        self,
        access_service,
        progress_service,
        enrollment_service,
        quiz_reader,
        quiz_course,
        student_id,
    ):
        info, modules = quiz_course
        await enrollment_service.enroll_free(student_id, info)
        quiz_reader.record(student_id, modules[0].quiz_id, 80)
        await progress_service.record_content_progress(
            student_id,
            info.course_id,
            modules[1].module_id,
            uuid4(),
            ContentProgressEvent(status=ProgressStatus.COMPLETED),
        )

        access = await access_service.compute_accessibility(student_id, info.course_id)

        assert access[modules[2].module_id] is True

    @pytest.mark.asyncio
    async def test_unknown_course_is_empty(self, access_service, student_id):
        assert await access_service.compute_accessibility(student_id, uuid4()) == {}


class TestExplainAccessibility:
    @pytest.mark.asyncio
    async def test_reason_for_locked_module(
        self, access_service, quiz_course, student_id
    ):
        info, modules = quiz_course

        decisions = await access_service.explain_accessibility(
            student_id, info.course_id, modules
        )

        locked = next(d for d in decisions if d.module_id == modules[1].module_id)
        assert locked.accessible is False
        assert locked.reason == AccessReason.QUIZ_NOT_PASSED
        assert locked.message == "Complete the quiz of module 1 with at least 60%"
