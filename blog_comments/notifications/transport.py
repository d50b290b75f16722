"""Notification transports.

A transport delivers one notification to one recipient. Errors propagate to
the dispatcher, which isolates them per recipient.
"""

from typing import TYPE_CHECKING, Protocol

import orjson
import structlog

from blog_comments.core.redis import notification_channel

from .models import Notification


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class NotificationTransport(Protocol):
    async def deliver(self, notification: Notification) -> None: ...


class RedisNotificationTransport:
    """Publish to the recipient's Redis Pub/Sub channel for real-time delivery."""

    def __init__(self, redis: "Redis") -> None:
        self.redis = redis

    async def deliver(self, notification: Notification) -> None:
        message = {"type": "notification", "data": notification.to_dict()}
        await self.redis.publish(
            notification_channel(notification.recipient.key),
            orjson.dumps(message),
        )


class LogNotificationTransport:
    """Write notifications to the structured log. Used when Redis is off."""

    async def deliver(self, notification: Notification) -> None:
        logger.info(
            "notification_logged",
            notification_type=notification.type.value,
            recipient=notification.recipient.key,
            title=notification.title,
            comment_id=str(notification.comment_id),
        )
