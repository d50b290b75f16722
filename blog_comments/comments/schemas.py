"""Pydantic schemas for the comment system.

Request/Response models with validation for:
- Comment creation (registered or guest), edition and voting
- Manual and bulk moderation, re-analysis
- Threaded and paginated listings

Public responses never include author emails or request metadata.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import Comment, CommentStatus, ModerationInfo, VoteType
from .thread import Pagination, ThreadNode


MAX_CONTENT_LENGTH = 5000


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a comment or a reply.

    Guests must send ``author_name`` and ``author_email``; registered users
    are identified by their token.
    """

    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    parent_id: UUID | None = None
    author_name: str | None = Field(None, max_length=100)
    author_email: EmailStr | None = None
    author_website: str | None = Field(None, max_length=300)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Strip whitespace and validate content."""
        v = v.strip()
        if not v:
            msg = "El contenido no puede estar vacio"
            raise ValueError(msg)
        return v


class UpdateCommentRequest(BaseModel):
    """Request to edit a comment."""

    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "El contenido no puede estar vacio"
            raise ValueError(msg)
        return v


class VoteRequest(BaseModel):
    type: VoteType


class ModerateCommentRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)
    reason: str | None = Field(None, max_length=500)


class BulkModerationRequest(BaseModel):
    comment_ids: list[UUID] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)
    reason: str | None = Field(None, max_length=500)


class ReanalyzeRequest(BaseModel):
    limit: int | None = Field(None, ge=1)


# ==============================================================================
# Response Schemas
# ==============================================================================


class AuthorResponse(BaseModel):
    """Author information in comment response."""

    name: str
    registered: bool
    user_id: str | None = None
    avatar: str | None = None
    website: str | None = None


class VotesResponse(BaseModel):
    likes: int = 0
    dislikes: int = 0
    score: int = 0


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def from_pagination(cls, pagination: Pagination) -> "PaginationResponse":
        return cls(**pagination.to_dict())


class CommentResponse(BaseModel):
    """Response for a single comment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    parent_id: UUID | None = None
    level: int
    author: AuthorResponse
    content: str
    status: CommentStatus
    votes: VotesResponse
    replies_count: int = 0
    pinned: bool = False
    is_edited: bool = False
    edited_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def comment_fields(cls, comment: Comment) -> dict[str, Any]:
        author = comment.author
        return {
            "id": comment.comment_id,
            "post_id": comment.post_id,
            "parent_id": comment.parent_id,
            "level": comment.level,
            "author": AuthorResponse(
                name=author.name,
                registered=author.kind == "registered",
                user_id=author.user_id,
                avatar=getattr(author, "avatar", None),
                website=getattr(author, "website", None),
            ),
            "content": comment.content,
            "status": comment.status,
            "votes": VotesResponse(
                likes=comment.votes.likes,
                dislikes=comment.votes.dislikes,
                score=comment.votes.score,
            ),
            "replies_count": comment.replies_count,
            "pinned": comment.pinned,
            "is_edited": comment.is_edited,
            "edited_at": comment.edited_at,
            "created_at": comment.created_at,
            "updated_at": comment.updated_at,
        }

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        """Create response from Comment entity."""
        return cls(**cls.comment_fields(comment))


class ThreadCommentResponse(CommentResponse):
    """Comment with nested replies."""

    replies: list["ThreadCommentResponse"] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: ThreadNode) -> "ThreadCommentResponse":
        return cls(
            **cls.comment_fields(node.comment),
            replies=[cls.from_node(child) for child in node.replies],
        )


class ModerationFlagResponse(BaseModel):
    type: str
    severity: str
    reason: str
    confidence: float


class ModerationInfoResponse(BaseModel):
    score: int
    flags: list[ModerationFlagResponse] = Field(default_factory=list)
    auto_action: CommentStatus | None = None
    auto_moderated: bool = False
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None

    @classmethod
    def from_info(cls, info: ModerationInfo) -> "ModerationInfoResponse":
        return cls(
            score=info.score,
            flags=[ModerationFlagResponse(**flag.to_dict()) for flag in info.flags],
            auto_action=info.auto_action,
            auto_moderated=info.auto_moderated,
            approved_by=info.approved_by,
            approved_at=info.approved_at,
            rejected_by=info.rejected_by,
            rejected_at=info.rejected_at,
            rejection_reason=info.rejection_reason,
            notes=info.notes,
        )


class ModeratedCommentResponse(CommentResponse):
    """Comment as seen by moderators."""

    author_email: str
    moderation: ModerationInfoResponse
    edit_count: int = 0

    @classmethod
    def from_comment(cls, comment: Comment) -> "ModeratedCommentResponse":
        return cls(
            **cls.comment_fields(comment),
            author_email=comment.author.email,
            moderation=ModerationInfoResponse.from_info(comment.moderation),
            edit_count=len(comment.edit_history),
        )


class ThreadListResponse(BaseModel):
    """One page of root threads."""

    items: list[ThreadCommentResponse]
    pagination: PaginationResponse


class CommentListResponse(BaseModel):
    """Paginated flat list of comments."""

    items: list[CommentResponse]
    pagination: PaginationResponse


class ModerationQueueResponse(BaseModel):
    items: list[ModeratedCommentResponse]
    pagination: PaginationResponse


class DeleteCommentResponse(BaseModel):
    id: UUID
    deleted: bool
    hidden: bool


class ReanalysisResponse(BaseModel):
    processed: int
    approved: int
    pending: int
    spam: int
