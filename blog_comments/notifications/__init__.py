"""Comment notifications.

Lifecycle events are turned into per-recipient notifications and delivered
through a pluggable transport (Redis Pub/Sub or the structured log).
"""

from blog_comments.notifications.dispatcher import DispatchResult, NotificationDispatcher
from blog_comments.notifications.events import (
    CommentApproved,
    CommentCreated,
    CommentEvent,
    CommentRejected,
    ModerationNeeded,
)
from blog_comments.notifications.models import Notification, NotificationType, Recipient
from blog_comments.notifications.transport import (
    LogNotificationTransport,
    NotificationTransport,
    RedisNotificationTransport,
)


__all__ = [
    "CommentApproved",
    "CommentCreated",
    "CommentEvent",
    "CommentRejected",
    "DispatchResult",
    "LogNotificationTransport",
    "ModerationNeeded",
    "Notification",
    "NotificationDispatcher",
    "NotificationTransport",
    "NotificationType",
    "Recipient",
    "RedisNotificationTransport",
]
