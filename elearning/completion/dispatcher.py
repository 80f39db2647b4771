"""Post-commit dispatcher for course completion side effects.

When an enrollment moves to ``completed`` the caller hands a job to
:meth:`CompletionDispatcher.on_course_completed` and returns. A background
worker issues the certificate and notifies the student. Failures are logged
and swallowed: they never reach the request that completed the course.

The worker is started and stopped by the application lifespan. Without a
running worker (tests, scripts) jobs are processed inline, still without
raising.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from elearning.core.context import RequestContext, get_request_id
from elearning.core.exceptions import ConflictError, EngineError

from .models import CompletionJob, NotificationType


if TYPE_CHECKING:
    from uuid import UUID

    from elearning.catalog.reader import CatalogReader
    from elearning.enrollments.service import EnrollmentService

    from .protocols import CertificateIssuer, Notifier


logger = structlog.get_logger(__name__)


class CompletionDispatcher:
    """Queue-backed dispatcher for certificate issuance and notification."""

    def __init__(
        self,
        enrollment_service: EnrollmentService,
        certificate_issuer: CertificateIssuer | None,
        notifier: Notifier | None,
        catalog: CatalogReader | None = None,
        queue_size: int = 1000,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            enrollment_service: Used to stamp ``certificate_issued_at``
            certificate_issuer: Certificate collaborator, None when not configured
            notifier: Notification collaborator, None when not configured
            catalog: Optional course lookup for the notification title
            queue_size: Maximum pending jobs (jobs are dropped when full)
        """
        self.enrollment_service = enrollment_service
        self.certificate_issuer = certificate_issuer
        self.notifier = notifier
        self.catalog = catalog
        self.queue_size = queue_size

        self._queue: asyncio.Queue[CompletionJob] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._worker_task: asyncio.Task | None = None
        self._start_time = 0.0

        self._jobs_queued = 0
        self._jobs_dropped = 0
        self._jobs_processed = 0
        self._side_effect_failures = 0

    # ==========================================================================
    # Entry points
    # ==========================================================================

    async def on_course_completed(
        self,
        student_id: UUID,
        course_id: UUID,
        enrollment_id: UUID,
    ) -> bool:
        """Hand off a completion. Never raises.

        Returns:
            True if the job was queued for the worker, False if it was
            processed inline or dropped.
        """
        job = CompletionJob(
            student_id=student_id,
            course_id=course_id,
            enrollment_id=enrollment_id,
            request_id=get_request_id() or None,
        )

        if not self._running:
            await self._process(job)
            return False

        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._jobs_dropped += 1
            logger.warning(
                "completion_queue_full",
                enrollment_id=str(enrollment_id),
                queue_size=self.queue_size,
                dropped_total=self._jobs_dropped,
            )
            return False

        self._jobs_queued += 1
        return True

    async def redispatch(self, enrollment_id: UUID) -> bool:
        """Re-run side effects for a completed enrollment without a certificate.

        Raises:
            NotFoundError: If the enrollment does not exist
            ConflictError: If the enrollment is not completed or already has
                its certificate
        """
        enrollment = await self.enrollment_service.get_enrollment(enrollment_id)
        if not enrollment.is_completed:
            raise ConflictError("Enrollment is not completed", "not_completed")
        if enrollment.certificate_issued_at is not None:
            raise ConflictError("Certificate already issued", "certificate_issued")

        logger.info("completion_redispatched", enrollment_id=str(enrollment_id))
        return await self.on_course_completed(
            enrollment.student_id, enrollment.course_id, enrollment.enrollment_id
        )

    # ==========================================================================
    # Background Worker
    # ==========================================================================

    async def start(self) -> None:
        if self._running:
            logger.warning("completion_dispatcher_already_running")
            return

        self._running = True
        self._start_time = time.monotonic()
        self._worker_task = asyncio.create_task(
            self._worker_loop(),
            name="completion_worker",
        )
        logger.info("completion_dispatcher_started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Stop the worker, then process whatever is still queued."""
        if not self._running:
            return

        self._running = False
        if self._worker_task:
            try:
                await asyncio.wait_for(self._worker_task, timeout=5.0)
            except TimeoutError:
                logger.warning("completion_worker_stop_timeout")
                self._worker_task.cancel()
            self._worker_task = None

        await self._drain()
        logger.info("completion_dispatcher_stopped", **self.get_stats())

    async def _worker_loop(self) -> None:
        while self._running:
            try:
                job = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue
            await self._process(job)
            self._queue.task_done()

    async def _drain(self) -> None:
        remaining: list[CompletionJob] = []
        while not self._queue.empty():
            try:
                remaining.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break

        if remaining:
            logger.info("completion_draining_remaining", count=len(remaining))
        for job in remaining:
            await self._process(job)

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    # ==========================================================================
    # Side effects
    # ==========================================================================

    async def _process(self, job: CompletionJob) -> None:
        with RequestContext(request_id=job.request_id, user_id=job.student_id):
            await self._issue_certificate(job)
            await self._notify(job)
            self._jobs_processed += 1

    async def _issue_certificate(self, job: CompletionJob) -> None:
        if self.certificate_issuer is None:
            logger.info(
                "certificate_issuer_not_configured",
                enrollment_id=str(job.enrollment_id),
            )
            return

        try:
            certificate_id = await self.certificate_issuer.issue(
                job.student_id, job.course_id, job.enrollment_id
            )
            await self.enrollment_service.mark_certificate_issued(job.enrollment_id)
        except EngineError as e:
            self._side_effect_failures += 1
            logger.warning(
                "certificate_issue_failed",
                enrollment_id=str(job.enrollment_id),
                error_code=e.code,
                error=e.message,
            )
        except Exception:
            self._side_effect_failures += 1
            logger.exception(
                "certificate_issue_error", enrollment_id=str(job.enrollment_id)
            )
        else:
            logger.info(
                "certificate_issued",
                enrollment_id=str(job.enrollment_id),
                certificate_id=certificate_id,
            )

    async def _notify(self, job: CompletionJob) -> None:
        if self.notifier is None:
            return

        try:
            title = await self._course_title(job.course_id)
            await self.notifier.notify(
                user_id=job.student_id,
                title=f"Course Completed: {title}",
                message=(
                    f'Congratulations! You have completed "{title}". '
                    "Your certificate is ready."
                ),
                action_url=f"/student/courses/{job.course_id}/certificate",
                notification_type=NotificationType.COURSE_COMPLETED.value,
            )
        except EngineError as e:
            self._side_effect_failures += 1
            logger.warning(
                "completion_notification_failed",
                enrollment_id=str(job.enrollment_id),
                error_code=e.code,
                error=e.message,
            )
        except Exception:
            self._side_effect_failures += 1
            logger.exception(
                "completion_notification_error", enrollment_id=str(job.enrollment_id)
            )

    async def _course_title(self, course_id: UUID) -> str:
        if self.catalog is None:
            return "your course"
        course = await self.catalog.get_course(course_id)
        return course.title if course and course.title else "your course"

    # ==========================================================================
    # Status/Monitoring
    # ==========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "queue_length": self._queue.qsize(),
            "jobs_queued": self._jobs_queued,
            "jobs_processed": self._jobs_processed,
            "jobs_dropped": self._jobs_dropped,
            "side_effect_failures": self._side_effect_failures,
            "uptime_seconds": (
                round(time.monotonic() - self._start_time, 1) if self._running else 0.0
            ),
        }
