# ruff: noqa: S608
"""Student notifications: stored in Cassandra, pushed through Redis pub/sub."""

import json
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import RedisError

from elearning.core.database.store import CassandraStore
from elearning.core.redis import notification_channel

from .models import Notification, NotificationType


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class NotificationPublisher(CassandraStore):
    """Writes the notification row, then publishes it for live clients.

    The publish step is best effort: a missing or failing Redis never fails
    the notification.
    """

    def __init__(self, session: "Session", keyspace: str, redis: "Redis | None" = None):
        self.redis = redis
        super().__init__(session, keyspace)

    def _prepare_statements(self) -> None:
        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications
            (user_id, created_at, notification_id, type, title, message,
             action_url, is_read)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        action_url: str | None = None,
        notification_type: str = NotificationType.COURSE_COMPLETED.value,
    ) -> None:
        notification = Notification(
            user_id=user_id,
            type=NotificationType(notification_type),
            title=title,
            message=message,
            action_url=action_url,
        )
        await self._execute(
            self._insert,
            [
                notification.user_id,
                notification.created_at,
                notification.notification_id,
                notification.type.value,
                notification.title,
                notification.message,
                notification.action_url,
                notification.is_read,
            ],
        )
        await self._publish(notification)

        logger.info(
            "notification_created",
            user_id=str(user_id),
            notification_type=notification.type.value,
        )

    async def _publish(self, notification: Notification) -> None:
        if not self.redis:
            return
        try:
            await self.redis.publish(
                notification_channel(str(notification.user_id)),
                json.dumps(notification.to_message()),
            )
        except RedisError as e:
            logger.warning(
                "notification_publish_failed",
                user_id=str(notification.user_id),
                error=str(e),
            )
