"""Notification models.

A notification is one message for one recipient. Recipients are addressed
by a stable key: the user id for registered people, the lower-cased email
otherwise.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from blog_comments.comments.models import Author
from blog_comments.posts.models import PostAuthor


# ==============================================================================
# Constants
# ==============================================================================

NOTIFICATION_PREVIEW_MAX_LENGTH = 200


class NotificationType(str, Enum):
    """Types of notifications."""

    NEW_COMMENT = "new_comment"
    REPLY = "reply"
    MODERATION_NEEDED = "moderation_needed"
    COMMENT_APPROVED = "comment_approved"
    COMMENT_REJECTED = "comment_rejected"


@dataclass(frozen=True)
class Recipient:
    key: str
    email: str
    name: str = ""
    user_id: str | None = None

    @classmethod
    def from_author(cls, author: Author) -> "Recipient":
        return cls(
            key=author.user_id or author.email.lower(),
            email=author.email,
            name=author.name,
            user_id=author.user_id,
        )

    @classmethod
    def from_post_author(cls, author: PostAuthor) -> "Recipient":
        return cls(
            key=author.user_id or author.email.lower(),
            email=author.email,
            name=author.name,
            user_id=author.user_id,
        )

    @classmethod
    def moderator(cls, email: str) -> "Recipient":
        return cls(key=email.lower(), email=email, name="Moderador")


@dataclass
class Notification:
    """Notification entity."""

    notification_id: UUID
    type: NotificationType
    recipient: Recipient
    title: str
    message: str
    reference_url: str | None
    comment_id: UUID
    post_id: UUID
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": str(self.notification_id),
            "type": self.type.value,
            "recipient": self.recipient.key,
            "title": self.title,
            "message": self.message,
            "reference_url": self.reference_url,
            "comment_id": str(self.comment_id),
            "post_id": str(self.post_id),
            "created_at": self.created_at.isoformat(),
        }


def create_notification(
    notification_type: NotificationType,
    recipient: Recipient,
    title: str,
    message: str,
    comment_id: UUID,
    post_id: UUID,
    reference_url: str | None = None,
) -> Notification:
    """Create a new notification with default values."""
    return Notification(
        notification_id=uuid4(),
        type=notification_type,
        recipient=recipient,
        title=title,
        message=message[:NOTIFICATION_PREVIEW_MAX_LENGTH],
        reference_url=reference_url,
        comment_id=comment_id,
        post_id=post_id,
        created_at=datetime.now(UTC),
    )
