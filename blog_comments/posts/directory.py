# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Post lookup backends.

The CMS pushes post snapshots with ``save``; comments read them by slug or
id and keep a per-post comment counter.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import Post


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class PostDirectory(ABC):
    """Read access to posts plus their comment counter."""

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Post | None: ...

    @abstractmethod
    async def get_by_id(self, post_id: UUID) -> Post | None: ...

    @abstractmethod
    async def save(self, post: Post) -> None: ...

    @abstractmethod
    async def increment_comment_count(self, post_id: UUID, delta: int) -> None:
        """Adjust the post's comment counter. Eventually consistent."""


class InMemoryPostDirectory(PostDirectory):
    """Process-local post directory for development and tests."""

    def __init__(self, posts: list[Post] | None = None) -> None:
        self._by_slug: dict[str, Post] = {}
        self._counts: dict[UUID, int] = {}
        for post in posts or []:
            self._by_slug[post.slug] = post
            self._counts[post.post_id] = post.comments_count

    def _with_count(self, post: Post) -> Post:
        return replace(post, comments_count=self._counts.get(post.post_id, 0))

    async def get_by_slug(self, slug: str) -> Post | None:
        post = self._by_slug.get(slug)
        return self._with_count(post) if post else None

    async def get_by_id(self, post_id: UUID) -> Post | None:
        for post in self._by_slug.values():
            if post.post_id == post_id:
                return self._with_count(post)
        return None

    async def save(self, post: Post) -> None:
        self._by_slug[post.slug] = post
        self._counts.setdefault(post.post_id, post.comments_count)

    async def increment_comment_count(self, post_id: UUID, delta: int) -> None:
        self._counts[post_id] = max(0, self._counts.get(post_id, 0) + delta)


class CassandraPostDirectory(PostDirectory):
    """Post directory backed by the ``comment_posts`` table."""

    def __init__(self, session: "Session", keyspace: str) -> None:
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._get_by_slug = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_posts WHERE slug = ?
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_posts WHERE post_id = ?
        """)

        self._upsert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_posts
            (slug, post_id, title, allow_comments, author_user_id, author_email, author_name)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_count = self.session.prepare(f"""
            SELECT comments_count FROM {self.keyspace}.post_comment_counts
            WHERE post_id = ?
        """)

        self._incr_count = self.session.prepare(f"""
            UPDATE {self.keyspace}.post_comment_counts
            SET comments_count = comments_count + ?
            WHERE post_id = ?
        """)

    async def _count(self, post_id: UUID) -> int:
        result = await self.session.aexecute(self._get_count, [post_id])
        row = result[0] if result else None
        return max(0, row.comments_count or 0) if row else 0

    async def get_by_slug(self, slug: str) -> Post | None:
        result = await self.session.aexecute(self._get_by_slug, [slug])
        row = result[0] if result else None
        if not row:
            return None
        return Post.from_row(row, await self._count(row.post_id))

    async def get_by_id(self, post_id: UUID) -> Post | None:
        result = await self.session.aexecute(self._get_by_id, [post_id])
        row = result[0] if result else None
        if not row:
            return None
        return Post.from_row(row, await self._count(post_id))

    async def save(self, post: Post) -> None:
        await self.session.aexecute(
            self._upsert,
            [
                post.slug,
                post.post_id,
                post.title,
                post.allow_comments,
                post.author.user_id,
                post.author.email,
                post.author.name,
            ],
        )

    async def increment_comment_count(self, post_id: UUID, delta: int) -> None:
        await self.session.aexecute(self._incr_count, [delta, post_id])
        logger.debug("post_comment_count_adjusted", post_id=str(post_id), delta=delta)
