"""Threaded comment system.

Provides:
- Comment documents with nested replies (max depth 5)
- Lifecycle state machine with moderation
- Thread assembly for public listings

Note: services and routers are not exported here to avoid circular imports.
Import them from their modules when needed.
"""

from .exceptions import CommentError
from .models import (
    COMMENTS_TABLES_CQL,
    Comment,
    CommentStatus,
    GuestAuthor,
    ModerationAction,
    RegisteredAuthor,
    VoteType,
)


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentError",
    "CommentStatus",
    "GuestAuthor",
    "ModerationAction",
    "RegisteredAuthor",
    "VoteType",
]
