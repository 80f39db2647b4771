"""Completion side-effect models: jobs and student notifications."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class NotificationType(str, Enum):
    PAYMENT_STATUS = "payment_status"
    COURSE_COMPLETED = "course_completed"
    ENROLLMENT = "enrollment"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by user so the inbox is a single-partition read
NOTIFICATIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    created_at TIMESTAMP,
    notification_id UUID,
    type TEXT,
    title TEXT,
    message TEXT,
    action_url TEXT,
    is_read BOOLEAN,
    PRIMARY KEY ((user_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATIONS_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass
class Notification:
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    action_url: str | None = None
    notification_id: UUID = field(default_factory=uuid4)
    is_read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> dict[str, Any]:
        """Pub/sub payload for connected clients."""
        return {
            "type": "notification",
            "data": {
                "id": str(self.notification_id),
                "type": self.type.value,
                "title": self.title,
                "message": self.message,
                "action_url": self.action_url,
                "is_read": self.is_read,
                "created_at": self.created_at.isoformat(),
            },
        }


@dataclass(frozen=True)
class CompletionJob:
    """A course completion waiting for its side effects.

    ``request_id`` is the id of the request that completed the course, so the
    worker's logs can be tied back to it.
    """

    student_id: UUID
    course_id: UUID
    enrollment_id: UUID
    request_id: str | None = None
    queued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
