"""Quiz collaborator interface consumed by the access gate."""

from typing import Protocol
from uuid import UUID

from elearning.catalog.models import QuizAttempt


class QuizAttemptReader(Protocol):
    async def best_passing_attempt(
        self, student_id: UUID, quiz_id: UUID, threshold: int
    ) -> QuizAttempt | None:
        """Highest-scoring submitted or graded attempt scoring at least ``threshold``."""
        ...
