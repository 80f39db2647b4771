"""Tests for the notification publisher."""

import json
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session
from redis.exceptions import ConnectionError as RedisConnectionError

from elearning.completion.notifier import NotificationPublisher


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def mock_redis():
    redis_mock = AsyncMock()
    redis_mock.publish = AsyncMock(return_value=1)
    return redis_mock


class TestNotificationPublisher:
    @pytest.mark.asyncio
    async def test_stores_and_publishes(self, mock_session, mock_redis):
        publisher = NotificationPublisher(mock_session, "test_keyspace", redis=mock_redis)
        user_id = uuid4()

        await publisher.notify(
            user_id=user_id,
            title="Course Completed: Pharmacology",
            message="Congratulations!",
            action_url="/student/courses/1/certificate",
        )

        params = mock_session.aexecute.call_args.args[1]
        assert params[0] == user_id
        assert params[3] == "course_completed"
        assert params[7] is False

        channel, payload = mock_redis.publish.call_args.args
        assert channel == f"notifications:user:{user_id}"
        message = json.loads(payload)
        assert message["type"] == "notification"
        assert message["data"]["title"] == "Course Completed: Pharmacology"

    @pytest.mark.asyncio
    async def test_works_without_redis(self, mock_session):
        publisher = NotificationPublisher(mock_session, "test_keyspace")

        await publisher.notify(uuid4(), "Payment Failed", "Cancelled by user")

        mock_session.aexecute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_publish_failure_is_tolerated(self, mock_session, mock_redis):
        mock_redis.publish = AsyncMock(side_effect=RedisConnectionError("down"))
        publisher = NotificationPublisher(mock_session, "test_keyspace", redis=mock_redis)

        await publisher.notify(
            uuid4(),
            "Payment Successful",
            "Received",
            notification_type="payment_status",
        )

        mock_session.aexecute.assert_awaited_once()
