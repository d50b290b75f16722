"""Post lookup models."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID


POST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_posts (
    slug TEXT PRIMARY KEY,
    post_id UUID,
    title TEXT,
    allow_comments BOOLEAN,
    author_user_id TEXT,
    author_email TEXT,
    author_name TEXT
)
"""

POST_ID_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comment_posts_id_idx
ON {keyspace}.comment_posts (post_id)
"""

# Counter columns must live in their own table
POST_COMMENT_COUNTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.post_comment_counts (
    post_id UUID PRIMARY KEY,
    comments_count COUNTER
)
"""

POSTS_TABLES_CQL = [
    POST_TABLE_CQL,
    POST_ID_INDEX_CQL,
    POST_COMMENT_COUNTS_TABLE_CQL,
]


@dataclass
class PostAuthor:
    user_id: str | None
    email: str
    name: str = ""


@dataclass
class Post:
    """The slice of a blog post the comment subsystem reads."""

    post_id: UUID
    slug: str
    title: str
    allow_comments: bool
    author: PostAuthor
    comments_count: int = 0

    @classmethod
    def from_row(cls, row: Any, comments_count: int = 0) -> "Post":
        """Create Post from Cassandra row."""
        return cls(
            post_id=row.post_id,
            slug=row.slug,
            title=row.title or "",
            allow_comments=row.allow_comments is not False,
            author=PostAuthor(
                user_id=row.author_user_id,
                email=row.author_email or "",
                name=row.author_name or "",
            ),
            comments_count=comments_count,
        )
