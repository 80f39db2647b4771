"""Outbound collaborator interfaces used by the engine."""

from typing import Protocol
from uuid import UUID


class CertificateIssuer(Protocol):
    async def issue(self, student_id: UUID, course_id: UUID, enrollment_id: UUID) -> str:
        """Issue the course certificate and return its id.

        Implementations must be idempotent per (student_id, course_id) and
        raise ``UpstreamUnavailableError`` on failure.
        """
        ...


class Notifier(Protocol):
    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        action_url: str | None = None,
        notification_type: str = "course_completed",
    ) -> None: ...
