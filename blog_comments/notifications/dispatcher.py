"""Notification dispatcher.

Routes comment lifecycle events to recipients:

- ``comment.created``: the post author, and for a reply the parent
  comment's author; nobody is notified about their own comment
- ``comment.moderation_needed``: every configured moderator
- ``comment.approved`` / ``comment.rejected``: the comment's author

``dispatch`` schedules delivery and returns at once. Each recipient is
delivered independently under its own timeout, and no failure ever reaches
the caller.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from blog_comments.comments.models import same_person

from .events import (
    CommentApproved,
    CommentCreated,
    CommentEvent,
    CommentRejected,
    ModerationNeeded,
)
from .models import Notification, NotificationType, Recipient, create_notification
from .templates import comment_url, moderation_url, render
from .transport import NotificationTransport


if TYPE_CHECKING:
    from blog_comments.config.settings import Settings


logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    event: str
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class NotificationDispatcher:
    """Fans lifecycle events out to recipients through a transport."""

    def __init__(
        self,
        transport: NotificationTransport,
        enabled: bool = True,
        moderators: list[str] | None = None,
        site_url: str = "",
        timeout: float = 3.0,
    ) -> None:
        self.transport = transport
        self.enabled = enabled
        self.moderators = [Recipient.moderator(email) for email in moderators or []]
        self.site_url = site_url
        self.timeout = timeout
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[type, Callable[..., list[Notification]]] = {
            CommentCreated: self._on_created,
            ModerationNeeded: self._on_moderation_needed,
            CommentApproved: self._on_approved,
            CommentRejected: self._on_rejected,
        }

    @classmethod
    def from_settings(
        cls, settings: "Settings", transport: NotificationTransport
    ) -> "NotificationDispatcher":
        return cls(
            transport=transport,
            enabled=settings.notifications_enabled,
            moderators=settings.moderator_emails,
            site_url=settings.site_url,
            timeout=settings.notification_timeout_seconds,
        )

    # ==========================================================================
    # Scheduling
    # ==========================================================================

    def dispatch(self, event: CommentEvent) -> asyncio.Task | None:
        """Schedule delivery of an event without waiting for it."""
        if not self.enabled:
            return None
        task = asyncio.get_running_loop().create_task(self.deliver(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # ==========================================================================
    # Delivery
    # ==========================================================================

    async def deliver(self, event: CommentEvent) -> DispatchResult:
        """Build the notifications for an event and deliver each one."""
        result = DispatchResult(event=event.name)
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("notification_event_unhandled", event=type(event).__name__)
            return result

        try:
            notifications = handler(event)
        except Exception:
            logger.exception(
                "notification_handler_failed",
                event=event.name,
                comment_id=str(event.comment.comment_id),
            )
            return result

        outcomes = await asyncio.gather(*(self._send(n) for n in notifications))
        for notification, ok in zip(notifications, outcomes, strict=True):
            target = result.delivered if ok else result.failed
            target.append(notification.recipient.key)

        logger.info(
            "notification_event_dispatched",
            event=event.name,
            comment_id=str(event.comment.comment_id),
            delivered=len(result.delivered),
            failed=len(result.failed),
        )
        return result

    async def _send(self, notification: Notification) -> bool:
        try:
            await asyncio.wait_for(
                self.transport.deliver(notification), timeout=self.timeout
            )
        except TimeoutError:
            logger.warning(
                "notification_delivery_timeout",
                notification_type=notification.type.value,
                recipient=notification.recipient.key,
                timeout=self.timeout,
            )
            return False
        except Exception:
            logger.exception(
                "notification_delivery_failed",
                notification_type=notification.type.value,
                recipient=notification.recipient.key,
            )
            return False
        return True

    # ==========================================================================
    # Handlers
    # ==========================================================================

    def _build(
        self,
        notification_type: NotificationType,
        recipient: Recipient,
        event: CommentEvent,
        reason: str | None = None,
        url: str | None = None,
    ) -> Notification:
        title, message = render(notification_type, event.comment, event.post, reason)
        return create_notification(
            notification_type=notification_type,
            recipient=recipient,
            title=title,
            message=message,
            comment_id=event.comment.comment_id,
            post_id=event.post.post_id,
            reference_url=url or comment_url(self.site_url, event.post, event.comment),
        )

    def _on_created(self, event: CommentCreated) -> list[Notification]:
        comment = event.comment
        notifications = []

        post_author = event.post.author
        if post_author.email or post_author.user_id:
            recipient = Recipient.from_post_author(post_author)
            is_self = bool(
                recipient.user_id and recipient.user_id == comment.author.user_id
            ) or bool(
                recipient.email
                and recipient.email.lower() == comment.author.email.lower()
            )
            if not is_self:
                notifications.append(
                    self._build(NotificationType.NEW_COMMENT, recipient, event)
                )

        if event.parent is not None and not same_person(
            event.parent.author, comment.author
        ):
            recipient = Recipient.from_author(event.parent.author)
            if all(n.recipient.key != recipient.key for n in notifications):
                notifications.append(self._build(NotificationType.REPLY, recipient, event))

        return notifications

    def _on_moderation_needed(self, event: ModerationNeeded) -> list[Notification]:
        url = moderation_url(self.site_url)
        return [
            self._build(NotificationType.MODERATION_NEEDED, moderator, event, url=url)
            for moderator in self.moderators
        ]

    def _on_approved(self, event: CommentApproved) -> list[Notification]:
        return [
            self._build(
                NotificationType.COMMENT_APPROVED,
                Recipient.from_author(event.comment.author),
                event,
            )
        ]

    def _on_rejected(self, event: CommentRejected) -> list[Notification]:
        return [
            self._build(
                NotificationType.COMMENT_REJECTED,
                Recipient.from_author(event.comment.author),
                event,
                reason=event.reason,
            )
        ]
