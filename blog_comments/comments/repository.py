# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Comment persistence.

The repository has no business rules. Its one concurrency primitive is
``mutate``: load a comment, apply a mutation, and write it back only if
nobody else wrote in between. Every writer (service, voting ledger, report
resolutions through the service) goes through it, so concurrent votes and
edits never lose updates.
"""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog_comments.core.database import was_applied

from .exceptions import CommentNotFoundError, ConcurrentModificationError
from .models import Comment, CommentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

# A mutation edits the comment in place. Returning False means "nothing
# changed" and skips the write. Raising aborts without writing.
Mutation = Callable[[Comment], bool | None]


class CommentRepository(ABC):
    """Persistence and query surface over comment documents."""

    @abstractmethod
    async def get(self, comment_id: UUID) -> Comment | None: ...

    @abstractmethod
    async def insert(self, comment: Comment) -> None: ...

    @abstractmethod
    async def mutate(self, comment_id: UUID, mutation: Mutation) -> Comment:
        """Atomically read-modify-write one comment.

        Raises:
            CommentNotFoundError: If the comment does not exist.
            ConcurrentModificationError: If the write kept losing races.
        """

    @abstractmethod
    async def delete_if_leaf(self, comment_id: UUID) -> bool:
        """Remove a comment only while it has no replies.

        Returns:
            True if the row was removed, False if it has replies.
        """

    @abstractmethod
    async def list_by_post(self, post_id: UUID) -> list[Comment]: ...

    @abstractmethod
    async def list_by_status(self, status: CommentStatus) -> list[Comment]: ...

    @abstractmethod
    async def list_by_author(self, user_id: str) -> list[Comment]: ...

    async def count_by_status(self) -> dict[str, int]:
        """Count comments per status across all posts."""
        counts: dict[str, int] = {}
        for status in CommentStatus:
            counts[status.value] = len(await self.list_by_status(status))
        return counts


def _by_creation(comments: list[Comment]) -> list[Comment]:
    return sorted(comments, key=lambda c: c.created_at)


# ==============================================================================
# In-memory backend
# ==============================================================================


class InMemoryCommentRepository(CommentRepository):
    """Process-local repository.

    Documents are deep-copied on the way in and out so callers never share
    state with the store. A lock per comment serialises mutations.
    """

    def __init__(self) -> None:
        self._comments: dict[UUID, Comment] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    def _lock(self, comment_id: UUID) -> asyncio.Lock:
        return self._locks.setdefault(comment_id, asyncio.Lock())

    async def get(self, comment_id: UUID) -> Comment | None:
        comment = self._comments.get(comment_id)
        return copy.deepcopy(comment) if comment else None

    async def insert(self, comment: Comment) -> None:
        if comment.comment_id in self._comments:
            msg = f"Comment {comment.comment_id} already exists"
            raise ValueError(msg)
        self._comments[comment.comment_id] = copy.deepcopy(comment)

    async def mutate(self, comment_id: UUID, mutation: Mutation) -> Comment:
        async with self._lock(comment_id):
            current = self._comments.get(comment_id)
            if current is None:
                raise CommentNotFoundError
            working = copy.deepcopy(current)
            if mutation(working) is False:
                return working
            working.version = current.version + 1
            self._comments[comment_id] = copy.deepcopy(working)
            return working

    async def delete_if_leaf(self, comment_id: UUID) -> bool:
        async with self._lock(comment_id):
            current = self._comments.get(comment_id)
            if current is None:
                raise CommentNotFoundError
            if current.replies_count > 0:
                return False
            del self._comments[comment_id]
        self._locks.pop(comment_id, None)
        return True

    async def list_by_post(self, post_id: UUID) -> list[Comment]:
        return _by_creation(
            [copy.deepcopy(c) for c in self._comments.values() if c.post_id == post_id]
        )

    async def list_by_status(self, status: CommentStatus) -> list[Comment]:
        return _by_creation(
            [copy.deepcopy(c) for c in self._comments.values() if c.status == status]
        )

    async def list_by_author(self, user_id: str) -> list[Comment]:
        return _by_creation(
            [
                copy.deepcopy(c)
                for c in self._comments.values()
                if c.author.user_id == user_id
            ]
        )

    async def count_by_status(self) -> dict[str, int]:
        counts = Counter(c.status.value for c in self._comments.values())
        return {status.value: counts.get(status.value, 0) for status in CommentStatus}


# ==============================================================================
# Cassandra backend
# ==============================================================================


class CassandraCommentRepository(CommentRepository):
    """Repository over the ``comments`` table.

    Writes are lightweight transactions conditioned on ``version``; a lost
    race re-reads the row and re-applies the mutation.
    """

    def __init__(self, session: "Session", keyspace: str, max_attempts: int = 5):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.max_attempts = max_attempts
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments
            (comment_id, post_id, parent_id, level, author_kind, author_user_id, author,
             content, status, votes, replies_count, moderation, pinned, pinned_by,
             pinned_at, metadata, edit_history, created_at, edited_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE comment_id = ?
        """)

        self._update_if_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET content = ?, status = ?, votes = ?, replies_count = ?, moderation = ?,
                pinned = ?, pinned_by = ?, pinned_at = ?, edit_history = ?,
                edited_at = ?, updated_at = ?, version = ?
            WHERE comment_id = ?
            IF version = ?
        """)

        self._delete_if_leaf = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comments
            WHERE comment_id = ?
            IF replies_count = 0
        """)

        # Secondary-index lookups
        self._get_by_post = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE post_id = ?
        """)

        self._get_by_status = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE status = ?
        """)

        self._get_by_author = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE author_user_id = ?
        """)

        self._count_by_status = self.session.prepare(f"""
            SELECT COUNT(*) FROM {self.keyspace}.comments WHERE status = ?
        """)

    async def get(self, comment_id: UUID) -> Comment | None:
        result = await self.session.aexecute(self._get_comment, [comment_id])
        row = result[0] if result else None
        return Comment.from_row(row) if row else None

    async def insert(self, comment: Comment) -> None:
        result = await self.session.aexecute(
            self._insert_comment,
            [
                comment.comment_id,
                comment.post_id,
                comment.parent_id,
                comment.level,
                comment.author.kind,
                comment.author.user_id,
                json.dumps(comment.author.to_dict()),
                comment.content,
                comment.status.value,
                json.dumps(comment.votes.to_dict()),
                comment.replies_count,
                json.dumps(comment.moderation.to_dict()),
                comment.pinned,
                comment.pinned_by,
                comment.pinned_at,
                json.dumps(comment.metadata.to_dict()),
                json.dumps([e.to_dict() for e in comment.edit_history]),
                comment.created_at,
                comment.edited_at,
                comment.updated_at,
                comment.version,
            ],
        )
        if not was_applied(result):
            msg = f"Comment {comment.comment_id} already exists"
            raise ValueError(msg)

    async def mutate(self, comment_id: UUID, mutation: Mutation) -> Comment:
        for attempt in range(1, self.max_attempts + 1):
            current = await self.get(comment_id)
            if current is None:
                raise CommentNotFoundError

            expected_version = current.version
            if mutation(current) is False:
                return current
            current.version = expected_version + 1

            result = await self.session.aexecute(
                self._update_if_version,
                [
                    current.content,
                    current.status.value,
                    json.dumps(current.votes.to_dict()),
                    current.replies_count,
                    json.dumps(current.moderation.to_dict()),
                    current.pinned,
                    current.pinned_by,
                    current.pinned_at,
                    json.dumps([e.to_dict() for e in current.edit_history]),
                    current.edited_at,
                    current.updated_at,
                    current.version,
                    comment_id,
                    expected_version,
                ],
            )
            if was_applied(result):
                return current

            logger.info(
                "comment_write_conflict",
                comment_id=str(comment_id),
                attempt=attempt,
                expected_version=expected_version,
            )

        raise ConcurrentModificationError

    async def delete_if_leaf(self, comment_id: UUID) -> bool:
        result = await self.session.aexecute(self._delete_if_leaf, [comment_id])
        if was_applied(result):
            return True
        # A failed condition returns the current row; no row means it is gone
        row = result[0] if result else None
        if row is None or getattr(row, "replies_count", None) is None:
            raise CommentNotFoundError
        return False

    async def _query(self, statement: object, value: object) -> list[Comment]:
        rows = await self.session.aexecute(statement, [value])
        return _by_creation([Comment.from_row(row) for row in rows])

    async def list_by_post(self, post_id: UUID) -> list[Comment]:
        return await self._query(self._get_by_post, post_id)

    async def list_by_status(self, status: CommentStatus) -> list[Comment]:
        return await self._query(self._get_by_status, status.value)

    async def list_by_author(self, user_id: str) -> list[Comment]:
        return await self._query(self._get_by_author, user_id)

    async def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for status in CommentStatus:
            result = await self.session.aexecute(self._count_by_status, [status.value])
            row = result[0] if result else None
            counts[status.value] = row.count if row else 0
        return counts
