"""Database models for threaded blog comments.

Cassandra table definitions and entity classes for:
- Comments: one document per comment, addressed by comment_id
- Nested values (author, votes, moderation, metadata, edit history) stored
  as JSON text so a comment is read and written as a single row

Architecture: Adjacency List pattern
- parent_id references the parent comment (NULL for root comments)
- level is denormalised so depth checks never walk the tree
- version is bumped on every write and guards conditional updates
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class CommentStatus(str, Enum):
    """Comment lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SPAM = "spam"
    HIDDEN = "hidden"


class VoteType(str, Enum):
    """Vote a voter can hold on a comment."""

    LIKE = "like"
    DISLIKE = "dislike"


class ModerationAction(str, Enum):
    """Manual moderation actions."""

    APPROVE = "approve"
    REJECT = "reject"
    SPAM = "spam"

    @property
    def target_status(self) -> CommentStatus:
        return _ACTION_STATUS[self]

    @property
    def past_tense(self) -> str:
        """Key used for per-action bulk results (approved, rejected, spam)."""
        return _ACTION_STATUS[self].value


_ACTION_STATUS = {
    ModerationAction.APPROVE: CommentStatus.APPROVED,
    ModerationAction.REJECT: CommentStatus.REJECTED,
    ModerationAction.SPAM: CommentStatus.SPAM,
}


class FlagSeverity(str, Enum):
    """Severity of a moderation flag."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Status transitions a moderator (or re-moderation) may apply.
# Hard deletion is handled separately and is allowed from any state.
ALLOWED_TRANSITIONS: dict[CommentStatus, frozenset[CommentStatus]] = {
    CommentStatus.PENDING: frozenset(
        {CommentStatus.APPROVED, CommentStatus.REJECTED, CommentStatus.SPAM}
    ),
    CommentStatus.APPROVED: frozenset(
        {CommentStatus.HIDDEN, CommentStatus.REJECTED, CommentStatus.SPAM}
    ),
    CommentStatus.REJECTED: frozenset({CommentStatus.APPROVED}),
    CommentStatus.SPAM: frozenset({CommentStatus.APPROVED}),
    CommentStatus.HIDDEN: frozenset(),
}


def can_transition(current: CommentStatus, target: CommentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    comment_id UUID PRIMARY KEY,
    post_id UUID,
    parent_id UUID,
    level INT,
    author_kind TEXT,
    author_user_id TEXT,
    author TEXT,
    content TEXT,
    status TEXT,
    votes TEXT,
    replies_count INT,
    moderation TEXT,
    pinned BOOLEAN,
    pinned_by TEXT,
    pinned_at TIMESTAMP,
    metadata TEXT,
    edit_history TEXT,
    created_at TIMESTAMP,
    edited_at TIMESTAMP,
    updated_at TIMESTAMP,
    version INT
)
"""

# Thread reads: every comment of a post
COMMENT_POST_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comments_post_idx
ON {keyspace}.comments (post_id)
"""

# Moderation queue and re-analysis batches
COMMENT_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comments_status_idx
ON {keyspace}.comments (status)
"""

# "My comments" listing
COMMENT_AUTHOR_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comments_author_idx
ON {keyspace}.comments (author_user_id)
"""

COMMENTS_TABLES_CQL = [
    COMMENT_TABLE_CQL,
    COMMENT_POST_INDEX_CQL,
    COMMENT_STATUS_INDEX_CQL,
    COMMENT_AUTHOR_INDEX_CQL,
]


# ==============================================================================
# Value Objects
# ==============================================================================


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class RegisteredAuthor:
    """Author identified by the upstream identity provider."""

    user_id: str
    name: str
    email: str
    avatar: str | None = None

    kind = "registered"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
        }


@dataclass
class GuestAuthor:
    """Anonymous author who supplied a name and email."""

    name: str
    email: str
    website: str | None = None

    kind = "guest"
    user_id = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "email": self.email,
            "website": self.website,
        }


Author = RegisteredAuthor | GuestAuthor


def author_from_dict(data: dict[str, Any]) -> Author:
    """Rebuild an author variant from its stored form."""
    if data.get("kind") == RegisteredAuthor.kind:
        return RegisteredAuthor(
            user_id=data["user_id"],
            name=data.get("name") or "Usuario",
            email=data.get("email") or "",
            avatar=data.get("avatar"),
        )
    return GuestAuthor(
        name=data.get("name") or "Invitado",
        email=data.get("email") or "",
        website=data.get("website"),
    )


def same_person(a: Author, b: Author) -> bool:
    """Whether two authors are the same person.

    Registered authors compare by user id; otherwise by email, case-insensitive.
    """
    if a.user_id and b.user_id:
        return a.user_id == b.user_id
    return bool(a.email) and a.email.lower() == b.email.lower()


@dataclass
class Votes:
    """Like/dislike counters plus the single vote slot of each voter."""

    likes: int = 0
    dislikes: int = 0
    voters: dict[str, VoteType] = field(default_factory=dict)

    @property
    def score(self) -> int:
        return self.likes - self.dislikes

    def to_dict(self) -> dict[str, Any]:
        return {
            "likes": self.likes,
            "dislikes": self.dislikes,
            "score": self.score,
            "voters": {key: vote.value for key, vote in self.voters.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Votes":
        # score is derived, never read back
        data = data or {}
        return cls(
            likes=int(data.get("likes", 0)),
            dislikes=int(data.get("dislikes", 0)),
            voters={k: VoteType(v) for k, v in (data.get("voters") or {}).items()},
        )


@dataclass
class ModerationFlag:
    """A single finding of the moderation policy."""

    type: str
    severity: FlagSeverity
    reason: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "reason": self.reason,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModerationFlag":
        return cls(
            type=data["type"],
            severity=FlagSeverity(data["severity"]),
            reason=data.get("reason", ""),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass
class ModerationResult:
    """Output of the moderation engine for one piece of content."""

    score: int
    flags: list[ModerationFlag]
    auto_action: CommentStatus

    @property
    def critical_flags(self) -> list[ModerationFlag]:
        return [f for f in self.flags if f.severity == FlagSeverity.CRITICAL]


@dataclass
class ModerationInfo:
    """Moderation state stored on a comment."""

    score: int = 100
    flags: list[ModerationFlag] = field(default_factory=list)
    auto_action: CommentStatus | None = None
    auto_moderated: bool = False
    analyzed_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None

    def apply_analysis(self, result: ModerationResult, now: datetime) -> None:
        """Overwrite the automatic part with a fresh analysis."""
        self.score = result.score
        self.flags = list(result.flags)
        self.auto_action = result.auto_action
        self.auto_moderated = result.auto_action != CommentStatus.PENDING
        self.analyzed_at = now

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "flags": [f.to_dict() for f in self.flags],
            "auto_action": self.auto_action.value if self.auto_action else None,
            "auto_moderated": self.auto_moderated,
            "analyzed_at": _iso(self.analyzed_at),
            "approved_by": self.approved_by,
            "approved_at": _iso(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": _iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ModerationInfo":
        data = data or {}
        auto_action = data.get("auto_action")
        return cls(
            score=int(data.get("score", 100)),
            flags=[ModerationFlag.from_dict(f) for f in data.get("flags") or []],
            auto_action=CommentStatus(auto_action) if auto_action else None,
            auto_moderated=bool(data.get("auto_moderated", False)),
            analyzed_at=_parse_dt(data.get("analyzed_at")),
            approved_by=data.get("approved_by"),
            approved_at=_parse_dt(data.get("approved_at")),
            rejected_by=data.get("rejected_by"),
            rejected_at=_parse_dt(data.get("rejected_at")),
            rejection_reason=data.get("rejection_reason"),
            notes=data.get("notes"),
        )


@dataclass
class CommentMetadata:
    """Request provenance. Never displayed."""

    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "referrer": self.referrer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CommentMetadata":
        data = data or {}
        return cls(
            ip_address=data.get("ip_address"),
            user_agent=data.get("user_agent"),
            referrer=data.get("referrer"),
        )


@dataclass
class EditRecord:
    """Previous content kept when a comment is edited."""

    content: str
    edited_at: datetime
    edited_by: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "edited_at": self.edited_at.isoformat(),
            "edited_by": self.edited_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditRecord":
        return cls(
            content=data["content"],
            edited_at=datetime.fromisoformat(data["edited_at"]),
            edited_by=data.get("edited_by", ""),
        )


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """Comment document. Plain data; behavior lives in the services."""

    comment_id: UUID
    post_id: UUID
    parent_id: UUID | None
    level: int
    author: Author
    content: str
    status: CommentStatus
    votes: Votes
    replies_count: int
    moderation: ModerationInfo
    pinned: bool
    pinned_by: str | None
    pinned_at: datetime | None
    metadata: CommentMetadata
    edit_history: list[EditRecord]
    created_at: datetime
    edited_at: datetime | None
    updated_at: datetime
    version: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    def is_authored_by(self, actor_id: str | None) -> bool:
        """Whether a registered actor wrote this comment."""
        return bool(actor_id) and self.author.user_id == str(actor_id)

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            post_id=row.post_id,
            parent_id=row.parent_id,
            level=row.level or 0,
            author=author_from_dict(json.loads(row.author or "{}")),
            content=row.content or "",
            status=CommentStatus(row.status),
            votes=Votes.from_dict(json.loads(row.votes or "{}")),
            replies_count=row.replies_count or 0,
            moderation=ModerationInfo.from_dict(json.loads(row.moderation or "{}")),
            pinned=row.pinned or False,
            pinned_by=row.pinned_by,
            pinned_at=row.pinned_at,
            metadata=CommentMetadata.from_dict(json.loads(row.metadata or "{}")),
            edit_history=[
                EditRecord.from_dict(e) for e in json.loads(row.edit_history or "[]")
            ],
            created_at=row.created_at,
            edited_at=row.edited_at,
            updated_at=row.updated_at or row.created_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "comment_id": str(self.comment_id),
            "post_id": str(self.post_id),
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "level": self.level,
            "author": self.author.to_dict(),
            "content": self.content,
            "status": self.status.value,
            "votes": self.votes.to_dict(),
            "replies_count": self.replies_count,
            "moderation": self.moderation.to_dict(),
            "pinned": self.pinned,
            "pinned_by": self.pinned_by,
            "pinned_at": _iso(self.pinned_at),
            "metadata": self.metadata.to_dict(),
            "edit_history": [e.to_dict() for e in self.edit_history],
            "created_at": self.created_at.isoformat(),
            "edited_at": _iso(self.edited_at),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    post_id: UUID,
    author: Author,
    content: str,
    status: CommentStatus,
    moderation: ModerationInfo,
    parent_id: UUID | None = None,
    level: int = 0,
    metadata: CommentMetadata | None = None,
) -> Comment:
    """Create a new comment with default values."""
    now = datetime.now(UTC)
    return Comment(
        comment_id=uuid4(),
        post_id=post_id,
        parent_id=parent_id,
        level=level,
        author=author,
        content=content,
        status=status,
        votes=Votes(),
        replies_count=0,
        moderation=moderation,
        pinned=False,
        pinned_by=None,
        pinned_at=None,
        metadata=metadata or CommentMetadata(),
        edit_history=[],
        created_at=now,
        edited_at=None,
        updated_at=now,
    )
