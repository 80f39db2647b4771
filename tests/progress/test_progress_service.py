"""Tests for the progress tracking service."""

import asyncio
from uuid import uuid4

import pytest

from elearning.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    WriteConflictError,
)
from elearning.enrollments.models import EnrollmentStatus
from elearning.progress.models import ContentProgressEvent, ProgressStatus


COMPLETE = ContentProgressEvent(status=ProgressStatus.COMPLETED)


@pytest.fixture
def course(catalog):
    """Free course with two modules and no quizzes."""
    return catalog.add_course([False, False])


class TestRecordContentProgress:
    @pytest.mark.asyncio
    async def test_requires_enrollment(self, progress_service, course, student_id):
        info, modules = course

        with pytest.raises(ForbiddenError):
            await progress_service.record_content_progress(
                student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
            )

    @pytest.mark.asyncio
    async def test_rejects_suspended_enrollment(
        self, progress_service, enrollment_service, course, student_id
    ):
        info, modules = course
        enrollment = await enrollment_service.enroll_free(student_id, info)
        await enrollment_service.transition(
            enrollment.enrollment_id, EnrollmentStatus.SUSPENDED
        )

        with pytest.raises(ForbiddenError):
            await progress_service.record_content_progress(
                student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
            )

    @pytest.mark.asyncio
    async def test_unknown_module(
        self, progress_service, enrollment_service, course, student_id
    ):
        info, _ = course
        await enrollment_service.enroll_free(student_id, info)

        with pytest.raises(NotFoundError) as exc_info:
            await progress_service.record_content_progress(
                student_id, info.course_id, uuid4(), uuid4(), COMPLETE
            )

        assert exc_info.value.code == "module_not_found"

    @pytest.mark.asyncio
    async def test_records_module_behind_unpassed_quiz(
        self,
        progress_service,
        enrollment_service,
        access_service,
        catalog,
        student_id,
    ):
        info, modules = catalog.add_course([True, False])
        await enrollment_service.enroll_free(student_id, info)
        started = ContentProgressEvent(status=ProgressStatus.IN_PROGRESS, progress=20)

        result = await progress_service.record_content_progress(
            student_id, info.course_id, modules[1].module_id, uuid4(), started
        )

        assert result.module.status == ProgressStatus.IN_PROGRESS
        assert result.content.progress == 20
        # Started modules stay open
        access = await access_service.compute_accessibility(student_id, info.course_id)
        assert access[modules[1].module_id] is True

    @pytest.mark.asyncio
    async def test_updates_all_levels_and_mirror(
        self, progress_service, enrollment_service, course, student_id
    ):
        info, modules = course
        enrollment = await enrollment_service.enroll_free(student_id, info)

        result = await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )

        assert result.content.status == ProgressStatus.COMPLETED
        assert result.module.status == ProgressStatus.COMPLETED
        assert result.course.overall_progress == 50
        assert result.course.version == 1
        assert result.course.branch_id == info.branch_id
        assert result.course_completed is False

        mirrored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert mirrored.progress == 50
        assert mirrored.progress_version == 1
        assert mirrored.last_accessed_at is not None

    @pytest.mark.asyncio
    async def test_completion_dispatches_once(
        self,
        progress_service,
        enrollment_service,
        certificate_issuer,
        notifier,
        course,
        student_id,
    ):
        info, modules = course
        enrollment = await enrollment_service.enroll_free(student_id, info)
        last_content = uuid4()

        await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )
        result = await progress_service.record_content_progress(
            student_id, info.course_id, modules[1].module_id, last_content, COMPLETE
        )
        await progress_service.record_content_progress(
            student_id, info.course_id, modules[1].module_id, last_content, COMPLETE
        )

        assert result.course_completed is True
        assert result.enrollment.status == EnrollmentStatus.COMPLETED
        assert len(certificate_issuer.calls) == 1
        assert [n["notification_type"] for n in notifier.sent] == ["course_completed"]

        stored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert stored.certificate_issued_at is not None

    @pytest.mark.asyncio
    async def test_lost_race_is_retried(
        self,
        progress_service,
        progress_repository,
        enrollment_service,
        course,
        student_id,
    ):
        info, modules = course
        await enrollment_service.enroll_free(student_id, info)
        await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(),
            ContentProgressEvent(progress=10),
        )
        progress_repository.cas_conflicts = 2

        result = await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )

        assert result.course.version == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self,
        progress_service,
        progress_repository,
        enrollment_service,
        course,
        student_id,
    ):
        info, modules = course
        await enrollment_service.enroll_free(student_id, info)
        await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )
        progress_repository.cas_conflicts = 10

        with pytest.raises(WriteConflictError):
            await progress_service.record_content_progress(
                student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
            )

    @pytest.mark.asyncio
    async def test_concurrent_events_are_all_kept(
        self,
        progress_service,
        progress_repository,
        enrollment_service,
        course,
        student_id,
    ):
        info, modules = course
        enrollment = await enrollment_service.enroll_free(student_id, info)
        module_id = modules[0].module_id
        contents = [uuid4() for _ in range(4)]

        await asyncio.gather(
            *[
                progress_service.record_content_progress(
                    student_id, info.course_id, module_id, content_id, COMPLETE
                )
                for content_id in contents
            ]
        )

        doc = progress_repository.docs[(student_id, info.course_id)]
        module = doc.find_module(module_id)
        assert {c.content_id for c in module.contents} == set(contents)
        assert doc.version == 4

        mirrored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert mirrored.progress_version == 4
        assert mirrored.progress == doc.overall_progress

    @pytest.mark.asyncio
    async def test_pending_enrollment_tracks_without_completing(
        self, progress_service, enrollment_service, catalog, student_id
    ):
        info, modules = catalog.add_course([False], requires_approval=True)
        enrollment = await enrollment_service.enroll_free(student_id, info)

        result = await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )

        assert result.course.status == ProgressStatus.COMPLETED
        assert result.enrollment.status == EnrollmentStatus.PENDING
        assert result.enrollment.progress == 100
        stored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert stored.completed_at is None


class TestGetCourseProgress:
    @pytest.mark.asyncio
    async def test_empty_view_lists_syllabus(self, progress_service, course, student_id):
        info, modules = course

        doc = await progress_service.get_course_progress(student_id, info.course_id)

        assert doc.status == ProgressStatus.NOT_STARTED
        assert doc.overall_progress == 0
        assert [m.module_id for m in doc.modules] == [m.module_id for m in modules]

    @pytest.mark.asyncio
    async def test_returns_stored_document(
        self, progress_service, enrollment_service, course, student_id
    ):
        info, modules = course
        await enrollment_service.enroll_free(student_id, info)
        await progress_service.record_content_progress(
            student_id, info.course_id, modules[0].module_id, uuid4(), COMPLETE
        )

        doc = await progress_service.get_course_progress(student_id, info.course_id)

        assert doc.overall_progress == 50
        assert doc.version == 1
