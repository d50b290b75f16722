"""Comment lifecycle events.

Events are emitted by the comment service after the change is stored and
consumed by the notification dispatcher. Each event carries the snapshots
the handlers need so delivery never has to read the database again.
"""

from dataclasses import dataclass

from blog_comments.comments.models import Comment
from blog_comments.posts.models import Post


@dataclass(frozen=True)
class CommentCreated:
    comment: Comment
    post: Post
    parent: Comment | None = None

    name = "comment.created"


@dataclass(frozen=True)
class ModerationNeeded:
    comment: Comment
    post: Post

    name = "comment.moderation_needed"


@dataclass(frozen=True)
class CommentApproved:
    comment: Comment
    post: Post
    approved_by: str | None = None

    name = "comment.approved"


@dataclass(frozen=True)
class CommentRejected:
    comment: Comment
    post: Post
    reason: str | None = None

    name = "comment.rejected"


CommentEvent = CommentCreated | ModerationNeeded | CommentApproved | CommentRejected
