"""Shared fixtures: in-memory stores with conditional-write semantics and
recording collaborators.

The stores yield to the event loop before every read and write so that
``asyncio.gather`` interleaves concurrent callers the way concurrent requests
interleave against Cassandra.
"""

import asyncio
import os
import tempfile
from collections import defaultdict
from decimal import Decimal
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault(
    "LOG_DIR", os.path.join(tempfile.gettempdir(), "elearning-test-logs")
)

from elearning.access.service import AccessService  # noqa: E402
from elearning.catalog.models import CourseInfo, ModuleInfo, QuizAttempt  # noqa: E402
from elearning.completion.dispatcher import CompletionDispatcher  # noqa: E402
from elearning.enrollments.models import Enrollment  # noqa: E402
from elearning.enrollments.service import EnrollmentService  # noqa: E402
from elearning.payments.models import Payment  # noqa: E402
from elearning.payments.service import PaymentService  # noqa: E402
from elearning.progress.models import LearningProgress  # noqa: E402
from elearning.progress.service import ProgressService  # noqa: E402


# ==============================================================================
# In-memory stores
# ==============================================================================


class InMemoryEnrollmentRepository:
    """Enrollment rows, the (student, course) key table and the student index."""

    def __init__(self):
        self.rows: dict[UUID, Enrollment] = {}
        self.keys: dict[tuple[UUID, UUID], UUID] = {}
        self.by_student: dict[UUID, list[UUID]] = defaultdict(list)
        self.cas_conflicts = 0
        self.cas_calls = 0

    async def insert(self, enrollment: Enrollment) -> None:
        await asyncio.sleep(0)
        self.rows[enrollment.enrollment_id] = enrollment

    async def index_for_student(self, enrollment: Enrollment) -> None:
        self.by_student[enrollment.student_id].append(enrollment.enrollment_id)

    async def delete(self, enrollment_id: UUID) -> None:
        self.rows.pop(enrollment_id, None)

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        await asyncio.sleep(0)
        return self.rows.get(enrollment_id)

    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        holder = self.keys.get((student_id, course_id))
        return await self.get(holder) if holder else None

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        return [
            self.rows[eid] for eid in self.by_student[student_id] if eid in self.rows
        ]

    async def claim_key(
        self, student_id: UUID, course_id: UUID, enrollment_id: UUID
    ) -> UUID | None:
        await asyncio.sleep(0)
        holder = self.keys.get((student_id, course_id))
        if holder is None:
            self.keys[(student_id, course_id)] = enrollment_id
            return None
        return holder

    async def release_key(
        self, student_id: UUID, course_id: UUID, enrollment_id: UUID
    ) -> bool:
        if self.keys.get((student_id, course_id)) != enrollment_id:
            return False
        del self.keys[(student_id, course_id)]
        return True

    async def compare_and_set(self, enrollment: Enrollment, expected_version: int) -> bool:
        await asyncio.sleep(0)
        self.cas_calls += 1
        if self.cas_conflicts:
            self.cas_conflicts -= 1
            return False
        stored = self.rows.get(enrollment.enrollment_id)
        if stored is None or stored.version != expected_version:
            return False
        self.rows[enrollment.enrollment_id] = enrollment
        return True

    def seed(self, enrollment: Enrollment) -> Enrollment:
        self.rows[enrollment.enrollment_id] = enrollment
        self.keys[(enrollment.student_id, enrollment.course_id)] = (
            enrollment.enrollment_id
        )
        self.by_student[enrollment.student_id].append(enrollment.enrollment_id)
        return enrollment


class InMemoryPaymentRepository:
    def __init__(self):
        self.rows: dict[str, Payment] = {}
        self.cas_conflicts = 0

    async def insert(self, payment: Payment) -> bool:
        await asyncio.sleep(0)
        if payment.gateway_reference in self.rows:
            return False
        self.rows[payment.gateway_reference] = payment
        return True

    async def get(self, gateway_reference: str) -> Payment | None:
        await asyncio.sleep(0)
        return self.rows.get(gateway_reference)

    async def compare_and_set(self, payment: Payment, expected_version: int) -> bool:
        await asyncio.sleep(0)
        if self.cas_conflicts:
            self.cas_conflicts -= 1
            return False
        stored = self.rows.get(payment.gateway_reference)
        if stored is None or stored.version != expected_version:
            return False
        self.rows[payment.gateway_reference] = payment
        return True


class InMemoryProgressRepository:
    def __init__(self):
        self.docs: dict[tuple[UUID, UUID], LearningProgress] = {}
        self.cas_conflicts = 0
        self.writes = 0

    async def get(self, student_id: UUID, course_id: UUID) -> LearningProgress | None:
        await asyncio.sleep(0)
        doc = self.docs.get((student_id, course_id))
        return doc.model_copy(deep=True) if doc else None

    async def insert(self, doc: LearningProgress) -> bool:
        await asyncio.sleep(0)
        key = (doc.student_id, doc.course_id)
        if key in self.docs:
            return False
        self.docs[key] = doc.model_copy(deep=True)
        self.writes += 1
        return True

    async def compare_and_set(self, doc: LearningProgress, expected_version: int) -> bool:
        await asyncio.sleep(0)
        if self.cas_conflicts:
            self.cas_conflicts -= 1
            return False
        key = (doc.student_id, doc.course_id)
        stored = self.docs.get(key)
        if stored is None or stored.version != expected_version:
            return False
        self.docs[key] = doc.model_copy(deep=True)
        self.writes += 1
        return True


# ==============================================================================
# Collaborators
# ==============================================================================


class FakeCatalog:
    def __init__(self):
        self.courses: dict[UUID, CourseInfo] = {}
        self.modules: dict[UUID, list[ModuleInfo]] = {}

    def add_course(
        self,
        module_quizzes: list[bool],
        price: Decimal = Decimal(0),
        requires_approval: bool = False,
        title: str = "Pharmacology Basics",
    ) -> tuple[CourseInfo, list[ModuleInfo]]:
        """Register a course with one module per entry; True gives it a quiz."""
        course = CourseInfo(
            course_id=uuid4(),
            branch_id=uuid4(),
            title=title,
            price=price,
            requires_approval=requires_approval,
        )
        modules = [
            ModuleInfo(
                module_id=uuid4(),
                course_id=course.course_id,
                order=position,
                quiz_id=uuid4() if has_quiz else None,
                title=f"Module {position}",
            )
            for position, has_quiz in enumerate(module_quizzes, start=1)
        ]
        self.courses[course.course_id] = course
        self.modules[course.course_id] = modules
        return course, modules

    async def get_course(self, course_id: UUID) -> CourseInfo | None:
        return self.courses.get(course_id)

    async def list_modules(self, course_id: UUID) -> list[ModuleInfo]:
        return sorted(self.modules.get(course_id, []), key=lambda m: m.order)


class FakeQuizReader:
    def __init__(self):
        self.attempts: dict[tuple[UUID, UUID], list[QuizAttempt]] = defaultdict(list)

    def record(
        self, student_id: UUID, quiz_id: UUID, score: int, status: str = "graded"
    ) -> None:
        self.attempts[(student_id, quiz_id)].append(
            QuizAttempt(
                student_id=student_id,
                quiz_id=quiz_id,
                attempt_id=uuid4(),
                status=status,
                percentage_score=score,
            )
        )

    async def best_passing_attempt(
        self, student_id: UUID, quiz_id: UUID, threshold: int
    ) -> QuizAttempt | None:
        passing = [
            a
            for a in self.attempts[(student_id, quiz_id)]
            if a.qualifies and a.percentage_score >= threshold
        ]
        return max(passing, key=lambda a: a.percentage_score, default=None)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[dict] = []
        self.error: Exception | None = None

    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        action_url: str | None = None,
        notification_type: str = "course_completed",
    ) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "action_url": action_url,
                "notification_type": notification_type,
            }
        )


class FakeCertificateIssuer:
    """Idempotent per (student, course), like the real service."""

    def __init__(self):
        self.calls: list[tuple[UUID, UUID, UUID]] = []
        self.certificates: dict[tuple[UUID, UUID], str] = {}
        self.error: Exception | None = None

    async def issue(self, student_id: UUID, course_id: UUID, enrollment_id: UUID) -> str:
        self.calls.append((student_id, course_id, enrollment_id))
        if self.error is not None:
            raise self.error
        key = (student_id, course_id)
        return self.certificates.setdefault(key, f"CERT-{len(self.certificates) + 1}")


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def quiz_reader() -> FakeQuizReader:
    return FakeQuizReader()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def certificate_issuer() -> FakeCertificateIssuer:
    return FakeCertificateIssuer()


@pytest.fixture
def enrollment_repository() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture
def payment_repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def progress_repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def enrollment_service(enrollment_repository) -> EnrollmentService:
    return EnrollmentService(enrollment_repository, max_write_retries=5)


@pytest.fixture
def payment_service(payment_repository, enrollment_service, notifier) -> PaymentService:
    return PaymentService(
        repository=payment_repository,
        enrollment_service=enrollment_service,
        notifier=notifier,
    )


@pytest.fixture
def dispatcher(
    enrollment_service, certificate_issuer, notifier, catalog
) -> CompletionDispatcher:
    """Dispatcher without a running worker: jobs are processed inline."""
    return CompletionDispatcher(
        enrollment_service=enrollment_service,
        certificate_issuer=certificate_issuer,
        notifier=notifier,
        catalog=catalog,
        queue_size=10,
    )


@pytest.fixture
def access_service(progress_repository, quiz_reader, catalog) -> AccessService:
    return AccessService(
        progress_repository=progress_repository,
        quiz_reader=quiz_reader,
        catalog=catalog,
        passing_threshold=60,
    )


@pytest.fixture
def progress_service(
    progress_repository, enrollment_service, catalog, dispatcher
) -> ProgressService:
    return ProgressService(
        repository=progress_repository,
        enrollment_service=enrollment_service,
        catalog=catalog,
        dispatcher=dispatcher,
        max_write_retries=5,
    )
