"""Tests for the course completion dispatcher."""

import asyncio
from uuid import uuid4

import pytest

from elearning.completion.dispatcher import CompletionDispatcher
from elearning.core.exceptions import ConflictError, UpstreamUnavailableError
from elearning.enrollments.models import EnrollmentStatus


@pytest.fixture
def course(catalog):
    return catalog.add_course([False], title="Dispensing Practice")


async def completed_enrollment(enrollment_service, student_id, course_id):
    enrollment = await enrollment_service.create_enrollment(student_id, course_id, None)
    return await enrollment_service.transition(
        enrollment.enrollment_id, EnrollmentStatus.COMPLETED
    )


class TestInlineDispatch:
    @pytest.mark.asyncio
    async def test_issues_certificate_and_notifies(
        self,
        dispatcher,
        enrollment_service,
        certificate_issuer,
        notifier,
        course,
        student_id,
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )

        queued = await dispatcher.on_course_completed(
            student_id, info.course_id, enrollment.enrollment_id
        )

        assert queued is False
        assert certificate_issuer.calls == [
            (student_id, info.course_id, enrollment.enrollment_id)
        ]
        stored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert stored.certificate_issued_at is not None

        [notification] = notifier.sent
        assert notification["title"] == "Course Completed: Dispensing Practice"
        assert notification["action_url"] == (
            f"/student/courses/{info.course_id}/certificate"
        )

    @pytest.mark.asyncio
    async def test_certificate_failure_is_swallowed(
        self,
        dispatcher,
        enrollment_service,
        certificate_issuer,
        notifier,
        course,
        student_id,
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )
        certificate_issuer.error = UpstreamUnavailableError("certificate service down")

        await dispatcher.on_course_completed(
            student_id, info.course_id, enrollment.enrollment_id
        )

        stored = await enrollment_service.get_enrollment(enrollment.enrollment_id)
        assert stored.certificate_issued_at is None
        # The notification still goes out
        assert len(notifier.sent) == 1
        assert dispatcher.get_stats()["side_effect_failures"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_swallowed(
        self,
        dispatcher,
        enrollment_service,
        certificate_issuer,
        notifier,
        course,
        student_id,
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )
        certificate_issuer.error = RuntimeError("boom")
        notifier.error = RuntimeError("boom")

        await dispatcher.on_course_completed(
            student_id, info.course_id, enrollment.enrollment_id
        )

        assert dispatcher.get_stats()["side_effect_failures"] == 2

    @pytest.mark.asyncio
    async def test_without_collaborators(self, enrollment_service, student_id):
        dispatcher = CompletionDispatcher(enrollment_service, None, None)
        enrollment = await completed_enrollment(enrollment_service, student_id, uuid4())

        await dispatcher.on_course_completed(
            student_id, enrollment.course_id, enrollment.enrollment_id
        )

        assert dispatcher.get_stats()["jobs_processed"] == 1


class TestRedispatch:
    @pytest.mark.asyncio
    async def test_redispatch_completed_without_certificate(
        self, dispatcher, enrollment_service, certificate_issuer, course, student_id
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )

        await dispatcher.redispatch(enrollment.enrollment_id)

        assert len(certificate_issuer.calls) == 1

    @pytest.mark.asyncio
    async def test_redispatch_rejects_issued(
        self, dispatcher, enrollment_service, course, student_id
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )
        await dispatcher.redispatch(enrollment.enrollment_id)

        with pytest.raises(ConflictError) as exc_info:
            await dispatcher.redispatch(enrollment.enrollment_id)

        assert exc_info.value.code == "certificate_issued"

    @pytest.mark.asyncio
    async def test_redispatch_rejects_active(
        self, dispatcher, enrollment_service, student_id
    ):
        enrollment = await enrollment_service.create_enrollment(student_id, uuid4(), None)

        with pytest.raises(ConflictError) as exc_info:
            await dispatcher.redispatch(enrollment.enrollment_id)

        assert exc_info.value.code == "not_completed"


class TestBackgroundWorker:
    @pytest.mark.asyncio
    async def test_worker_processes_queued_jobs(
        self, dispatcher, enrollment_service, certificate_issuer, course, student_id
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )
        await dispatcher.start()
        try:
            queued = await dispatcher.on_course_completed(
                student_id, info.course_id, enrollment.enrollment_id
            )
            await asyncio.wait_for(dispatcher.join(), timeout=2.0)
        finally:
            await dispatcher.stop()

        assert queued is True
        assert len(certificate_issuer.calls) == 1
        assert dispatcher.is_running is False

    @pytest.mark.asyncio
    async def test_full_queue_drops_job(self, enrollment_service, student_id):
        dispatcher = CompletionDispatcher(enrollment_service, None, None, queue_size=1)
        dispatcher._running = True  # accept jobs without a worker draining them

        first = await dispatcher.on_course_completed(student_id, uuid4(), uuid4())
        second = await dispatcher.on_course_completed(student_id, uuid4(), uuid4())

        assert first is True
        assert second is False
        assert dispatcher.get_stats()["jobs_dropped"] == 1

    @pytest.mark.asyncio
    async def test_stop_drains_remaining_jobs(
        self, dispatcher, enrollment_service, certificate_issuer, course, student_id
    ):
        info, _ = course
        enrollment = await completed_enrollment(
            enrollment_service, student_id, info.course_id
        )
        await dispatcher.start()
        await dispatcher.on_course_completed(
            student_id, info.course_id, enrollment.enrollment_id
        )

        await dispatcher.stop()

        assert len(certificate_issuer.calls) == 1
